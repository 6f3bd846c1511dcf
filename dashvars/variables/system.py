"""System variables - built-ins describing the dashboard and organization.

They are added by the session on every init, are never saved and never
appear in the URL.
"""

from typing import TYPE_CHECKING, Any

from core import SystemVariableModel, UrlQueryValue, VariableOption, VariableType
from dashvars.adapters import VariableAdapter, register_adapter

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

DASHBOARD_VARIABLE_NAME = "__dashboard"
ORG_VARIABLE_NAME = "__org"


async def _noop_set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    return None


async def _noop_set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    return None


async def _noop_update_options(session: "TemplatingSession", variable, search_filter: str | None = None):
    return None


def _system_reducer(state, action):
    return state


@register_adapter(VariableType.SYSTEM)
def create_system_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.SYSTEM,
        name="system",
        description="",
        model_class=SystemVariableModel,
        reducer=_system_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_noop_set_value,
        set_value_from_url=_noop_set_value_from_url,
        update_options=_noop_update_options,
        get_save_model=lambda variable, save_current_as_default=False: {},
        get_value_for_url=lambda variable: variable.current.value,
    )


def system_variable(name: str, value: Any) -> SystemVariableModel:
    """Built-in variable holding `value` (usually a SystemValue)."""
    return SystemVariableModel(
        name=name,
        id=name,
        current=VariableOption(text=str(value), value=value),
    )
