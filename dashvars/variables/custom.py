"""Custom variables - options typed as a comma separated list."""

import re
from typing import TYPE_CHECKING, Any

from core import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    CustomVariableModel,
    UrlQueryValue,
    VariableOption,
    VariableType,
    to_variable_identifier,
)
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.serialization import strip_volatile
from dashvars.state.actions import (
    is_all_variable,
    set_option_as_current,
    set_option_from_url,
    validate_variable_selection_state,
)
from dashvars.state.shared_reducer import VariablesState, to_variable_payload, update_instance
from dashvars.state.store import Action, create_action

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

# Items are separated by commas; `\,` escapes a literal comma
_ITEM = re.compile(r"(?:\\,|[^,])+")
_KEY_VALUE = re.compile(r"^(.+)\s:\s(.+)$")

create_custom_options_from_query = create_action("templating/custom/createCustomOptionsFromQuery")


def parse_custom_options(query: str) -> list[VariableOption]:
    """`a,b` -> two options; `Text : value` sets text and value separately."""
    options = []
    for item in _ITEM.findall(query or ""):
        item = item.replace("\\,", ",")
        match = _KEY_VALUE.match(item)
        if match:
            options.append(VariableOption(text=match.group(1).strip(), value=match.group(2).strip()))
        else:
            options.append(VariableOption(text=item.strip(), value=item.strip()))
    return options


def custom_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not create_custom_options_from_query.match(action):
        return state

    def mutate(variable: CustomVariableModel) -> None:
        options = parse_custom_options(variable.query)
        if variable.include_all:
            options.insert(0, VariableOption(text=ALL_VARIABLE_TEXT, value=ALL_VARIABLE_VALUE))
        variable.options = options

    return update_instance(state, action.payload.id, mutate)


async def update_custom_variable_options(
    session: "TemplatingSession",
    variable: CustomVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    session.dispatch(create_custom_options_from_query(to_variable_payload(identifier)))
    await validate_variable_selection_state(session, identifier)


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


async def _set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    await set_option_from_url(session, to_variable_identifier(variable), url_value)


def _get_save_model(variable: CustomVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    return strip_volatile(variable)


def _get_value_for_url(variable: CustomVariableModel) -> Any:
    if is_all_variable(variable):
        return ALL_VARIABLE_TEXT
    return variable.current.value


@register_adapter(VariableType.CUSTOM)
def create_custom_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.CUSTOM,
        name="Custom",
        description="Define variable values manually",
        model_class=CustomVariableModel,
        reducer=custom_variable_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=update_custom_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=_get_value_for_url,
    )
