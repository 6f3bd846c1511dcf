"""Text box variables - a free-form value typed by the user.

The value the dashboard was saved with is kept in `original_query`, so a
value typed while viewing (or taken from the URL) is not persisted unless
the caller asks to save current values as defaults.
"""

import copy
from typing import TYPE_CHECKING, Any

from core import TextBoxVariableModel, UrlQueryValue, VariableOption, VariableType, to_variable_identifier
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.serialization import option_to_dict, strip_volatile
from dashvars.state.actions import set_option_as_current, set_option_from_url
from dashvars.state.shared_reducer import (
    VariablesState,
    change_variable_prop,
    to_variable_payload,
    update_instance,
)
from dashvars.state.store import Action, create_action
from dashvars.sync.url import ensure_string_values

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

create_text_box_options = create_action("templating/textbox/createTextBoxOptions")


def textbox_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not create_text_box_options.match(action):
        return state

    def mutate(variable: TextBoxVariableModel) -> None:
        value = (variable.query or "").strip()
        option = VariableOption(text=value, value=value)
        variable.options = [option]
        variable.current = copy.copy(option)

    return update_instance(state, action.payload.id, mutate)


async def update_textbox_variable_options(
    session: "TemplatingSession",
    variable: TextBoxVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    session.dispatch(create_text_box_options(to_variable_payload(identifier)))
    option = session.get_variable(identifier.id).options[0]
    await set_option_as_current(session, identifier, option, False)


async def set_textbox_variable_options_from_url(
    session: "TemplatingSession",
    variable: TextBoxVariableModel,
    url_value: UrlQueryValue,
) -> None:
    value = ensure_string_values(url_value)
    session.dispatch(change_variable_prop(to_variable_payload(variable, {"prop_name": "query", "prop_value": value})))
    await set_option_from_url(session, to_variable_identifier(variable), value)


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


def _before_adding(model: TextBoxVariableModel) -> TextBoxVariableModel:
    model = copy.deepcopy(model)
    model.original_query = model.query
    return model


def _get_save_model(variable: TextBoxVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    model = strip_volatile(variable)
    if save_current_as_default or variable.original_query is None:
        return model

    original = variable.original_query
    option = option_to_dict(VariableOption(text=original, value=original))
    model["query"] = original
    model["current"] = option
    model["options"] = [option]
    return model


@register_adapter(VariableType.TEXTBOX)
def create_textbox_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.TEXTBOX,
        name="Text box",
        description="Define a textbox variable, where users can enter any arbitrary string",
        model_class=TextBoxVariableModel,
        reducer=textbox_variable_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_set_value,
        set_value_from_url=set_textbox_variable_options_from_url,
        update_options=update_textbox_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=lambda variable: variable.current.value,
        before_adding=_before_adding,
    )
