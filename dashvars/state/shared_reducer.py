"""Actions and reducer shared by every variable kind.

Variables are stored in a dict keyed by id. Reducers never mutate the
incoming state: the targeted variable is copied, changed and placed into a
new dict.
"""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core import (
    LoadingState,
    SerializedError,
    VariableIdentifier,
    VariableModel,
    VariableOption,
    VariableType,
)
from dashvars.adapters import variable_adapters
from dashvars.errors import VariableNotFoundError
from dashvars.state.store import Action, create_action

logger = logging.getLogger(__name__)

VariablesState = dict[str, VariableModel]


@dataclass(frozen=True)
class VariablePayload:
    """Payload addressing one variable. `type` routes it to the kind's reducer."""

    type: VariableType
    id: str
    data: Any = None


def to_variable_payload(target: VariableIdentifier | VariableModel, data: Any = None) -> VariablePayload:
    return VariablePayload(type=target.type, id=target.id, data=data)


def get_instance_state(state: VariablesState, id: str) -> VariableModel:
    variable = state.get(id)
    if variable is None:
        raise VariableNotFoundError(id)
    return variable


def update_instance(
    state: VariablesState,
    id: str,
    mutate: Callable[[VariableModel], None],
) -> VariablesState:
    """New state with a copy of variable `id` changed by `mutate`."""
    variable = copy.deepcopy(get_instance_state(state, id))
    mutate(variable)
    return {**state, id: variable}


# =============================================================================
# ACTIONS
# =============================================================================

# data: {"global": bool, "index": int, "model": VariableModel}
add_variable = create_action("templating/shared/addVariable")
# data: {"re_index": bool}
remove_variable = create_action("templating/shared/removeVariable")
variable_state_not_started = create_action("templating/shared/variableStateNotStarted")
variable_state_fetching = create_action("templating/shared/variableStateFetching")
variable_state_completed = create_action("templating/shared/variableStateCompleted")
# data: {"error": Any}
variable_state_failed = create_action("templating/shared/variableStateFailed")
# data: {"new_id": str}
duplicate_variable = create_action("templating/shared/duplicateVariable")
# data: {"from_index": int, "to_index": int}
change_variable_order = create_action("templating/shared/changeVariableOrder")
# data: {"new_name": str}
change_variable_name_succeeded = create_action("templating/shared/changeVariableNameSucceeded")
# data: {"prop_name": str, "prop_value": Any}
change_variable_prop = create_action("templating/shared/changeVariableProp")
# data: {"new_type": VariableType}
change_variable_type = create_action("templating/shared/changeVariableType")
# data: {"option": VariableOption}
set_current_variable_value = create_action("templating/shared/setCurrentVariableValue")
clean_variables = create_action("templating/shared/cleanVariables")


# =============================================================================
# REDUCER
# =============================================================================


def _set_loading_state(state: VariablesState, payload: VariablePayload, loading: LoadingState, error=None):
    def mutate(variable: VariableModel) -> None:
        variable.state = loading
        variable.error = error

    return update_instance(state, payload.id, mutate)


def _sorted_by_index(state: VariablesState) -> list[VariableModel]:
    return sorted(state.values(), key=lambda v: v.index)


def _reindex(variables: list[VariableModel]) -> VariablesState:
    result: VariablesState = {}
    for index, variable in enumerate(variables):
        if variable.index != index:
            variable = copy.deepcopy(variable)
            variable.index = index
        result[variable.id] = variable
    return result


def _error_for_state(error: Any) -> SerializedError:
    if isinstance(error, SerializedError):
        return error
    return SerializedError(message=str(error) or type(error).__name__, name=type(error).__name__)


def shared_reducer(state: VariablesState, action: Action) -> VariablesState:
    payload = action.payload

    if add_variable.match(action):
        adapter = variable_adapters.get_if_exists(payload.type)
        if adapter is not None and adapter.before_adding is not None:
            model = adapter.before_adding(payload.data["model"])
        else:
            model = copy.deepcopy(payload.data["model"])
        model.id = payload.id
        model.index = payload.data["index"]
        model.global_ = payload.data.get("global", False)
        return {**state, payload.id: model}

    if variable_state_not_started.match(action):
        return _set_loading_state(state, payload, LoadingState.NOT_STARTED)

    if variable_state_fetching.match(action):
        return _set_loading_state(state, payload, LoadingState.LOADING)

    if variable_state_completed.match(action):
        return _set_loading_state(state, payload, LoadingState.DONE)

    if variable_state_failed.match(action):
        return _set_loading_state(state, payload, LoadingState.ERROR, _error_for_state(payload.data["error"]))

    if remove_variable.match(action):
        remaining = {k: v for k, v in state.items() if k != payload.id}
        if payload.data and payload.data.get("re_index"):
            return _reindex(_sorted_by_index(remaining))
        return remaining

    if duplicate_variable.match(action):
        original = get_instance_state(state, payload.id)
        new_id = payload.data["new_id"]
        duplicate = copy.deepcopy(original)
        duplicate.id = new_id
        duplicate.name = f"copy_of_{original.name}"
        duplicate.index = len(state)
        return {**state, new_id: duplicate}

    if change_variable_order.match(action):
        ordered = _sorted_by_index(state)
        if not 0 <= payload.data["from_index"] < len(ordered):
            return state
        moved = ordered.pop(payload.data["from_index"])
        ordered.insert(payload.data["to_index"], moved)
        return _reindex(ordered)

    if change_variable_name_succeeded.match(action):

        def rename(variable: VariableModel) -> None:
            variable.name = payload.data["new_name"]

        return update_instance(state, payload.id, rename)

    if change_variable_prop.match(action):

        def set_prop(variable: VariableModel) -> None:
            setattr(variable, payload.data["prop_name"], copy.deepcopy(payload.data["prop_value"]))

        return update_instance(state, payload.id, set_prop)

    if change_variable_type.match(action):
        original = get_instance_state(state, payload.id)
        replacement = variable_adapters.get(payload.data["new_type"]).initial_state
        replacement.id = original.id
        replacement.name = original.name
        replacement.label = original.label
        replacement.index = original.index
        replacement.global_ = original.global_
        return {**state, payload.id: replacement}

    if set_current_variable_value.match(action):
        option: VariableOption | None = payload.data.get("option") if payload.data else None
        if option is None:
            return state

        def set_current(variable: VariableModel) -> None:
            current = VariableOption(
                text=copy.copy(option.text),
                value=copy.copy(option.value),
                selected=option.selected,
                is_none=option.is_none,
            )
            variable.current = current
            for existing in variable.options:
                if isinstance(current.value, list):
                    existing.selected = existing.value in current.value
                else:
                    existing.selected = existing.value == current.value

        return update_instance(state, payload.id, set_current)

    return state
