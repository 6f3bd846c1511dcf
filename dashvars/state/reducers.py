"""Root templating reducer.

Variable actions run through the shared reducer first and then through the
reducer of the kind named in the payload's `type`.
"""

from dataclasses import dataclass, field

from core import VariableModel
from dashvars.adapters import variable_adapters
from dashvars.state.async_request import AsyncRequestState
from dashvars.state.options import option_requests_reducer
from dashvars.state.shared_reducer import (
    VariablePayload,
    VariablesState,
    clean_variables,
    shared_reducer,
)
from dashvars.state.store import Action
from dashvars.state.transaction import (
    TransactionState,
    initial_transaction_state,
    transaction_reducer,
)


@dataclass(frozen=True)
class TemplatingState:
    variables: dict[str, VariableModel] = field(default_factory=dict)
    transaction: TransactionState = initial_transaction_state
    option_requests: dict[str, AsyncRequestState] = field(default_factory=dict)


def variables_reducer(state: VariablesState | None, action: Action) -> VariablesState:
    if state is None:
        state = {}

    if clean_variables.match(action):
        # Global variables outlive a dashboard
        return {id: variable for id, variable in state.items() if variable.global_}

    payload = action.payload
    if isinstance(payload, VariablePayload):
        adapter = variable_adapters.get_if_exists(payload.type)
        if adapter is not None:
            return adapter.reducer(shared_reducer(state, action), action)

    return state


def templating_reducer(state: TemplatingState | None, action: Action) -> TemplatingState:
    if state is None:
        state = TemplatingState()

    variables = variables_reducer(state.variables, action)
    transaction = transaction_reducer(state.transaction, action)
    if clean_variables.match(action):
        option_requests = {id: request for id, request in state.option_requests.items() if id in variables}
    else:
        option_requests = option_requests_reducer(state.option_requests, action)

    if (
        variables is state.variables
        and transaction is state.transaction
        and option_requests is state.option_requests
    ):
        return state
    return TemplatingState(variables=variables, transaction=transaction, option_requests=option_requests)
