"""Constant variables - a hidden fixed value."""

from typing import TYPE_CHECKING, Any

from core import ConstantVariableModel, UrlQueryValue, VariableOption, VariableType, to_variable_identifier
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.serialization import strip_volatile
from dashvars.state.actions import set_option_as_current, set_option_from_url
from dashvars.state.shared_reducer import VariablesState, to_variable_payload, update_instance
from dashvars.state.store import Action, create_action

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

create_constant_options_from_query = create_action("templating/constant/createConstantOptionsFromQuery")


def constant_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not create_constant_options_from_query.match(action):
        return state

    def mutate(variable: ConstantVariableModel) -> None:
        value = (variable.query or "").strip()
        variable.options = [VariableOption(text=value, value=value)]

    return update_instance(state, action.payload.id, mutate)


async def update_constant_variable_options(
    session: "TemplatingSession",
    variable: ConstantVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    session.dispatch(create_constant_options_from_query(to_variable_payload(identifier)))
    option = session.get_variable(identifier.id).options[0]
    await set_option_as_current(session, identifier, option, False)


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


async def _set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    await set_option_from_url(session, to_variable_identifier(variable), url_value)


def _get_save_model(variable: ConstantVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    return strip_volatile(variable)


@register_adapter(VariableType.CONSTANT)
def create_constant_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.CONSTANT,
        name="Constant",
        description="Define a hidden constant variable, useful for metric prefixes in dashboards you want to share",
        model_class=ConstantVariableModel,
        reducer=constant_variable_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=update_constant_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=lambda variable: variable.current.value,
    )
