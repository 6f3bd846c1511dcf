"""Templating transaction state.

A transaction brackets the bulk refresh of a dashboard's variables. Edits made
after the transaction completed mark it dirty, which is how unsaved variable
changes are detected.
"""

from dataclasses import dataclass, replace
from enum import Enum

from dashvars.state.shared_reducer import (
    add_variable,
    change_variable_order,
    change_variable_prop,
    change_variable_type,
    duplicate_variable,
    remove_variable,
)
from dashvars.state.store import Action, create_action


class TransactionStatus(str, Enum):
    NOT_STARTED = "Not started"
    FETCHING = "Fetching"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class TransactionState:
    uid: str | None = None
    status: TransactionStatus = TransactionStatus.NOT_STARTED
    is_dirty: bool = False


initial_transaction_state = TransactionState()

# payload: {"uid": str | None}
variables_init_transaction = create_action("templating/transaction/variablesInitTransaction")
variables_complete_transaction = create_action("templating/transaction/variablesCompleteTransaction")
variables_clear_transaction = create_action("templating/transaction/variablesClearTransaction")

_DIRTY_ACTION_TYPES = frozenset(
    creator.type
    for creator in (
        remove_variable,
        add_variable,
        change_variable_prop,
        change_variable_order,
        duplicate_variable,
        change_variable_type,
    )
)


def transaction_reducer(state: TransactionState | None, action: Action) -> TransactionState:
    if state is None:
        state = initial_transaction_state

    if variables_init_transaction.match(action):
        return replace(state, uid=action.payload["uid"], status=TransactionStatus.FETCHING)

    if variables_complete_transaction.match(action):
        # Completion of a cancelled or earlier transaction
        if state.uid != action.payload["uid"]:
            return state
        return replace(state, status=TransactionStatus.COMPLETED)

    if variables_clear_transaction.match(action):
        return initial_transaction_state

    if action.type in _DIRTY_ACTION_TYPES and state.status == TransactionStatus.COMPLETED:
        return replace(state, is_dirty=True)

    return state
