"""Interval variables - time spans such as `1m,10m,1h`, with an optional auto step.

The auto option's value is `$__auto_interval_<name>`. The interval it stands
for is recomputed from the time range on every refresh and published as a
resolver built-in, so interpolation picks up the current span.
"""

import logging
import re
from typing import TYPE_CHECKING, Any

from core import IntervalVariableModel, UrlQueryValue, VariableOption, VariableType, to_variable_identifier
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.serialization import strip_volatile
from dashvars.state.actions import (
    set_option_as_current,
    set_option_from_url,
    validate_variable_selection_state,
)
from dashvars.state.shared_reducer import VariablesState, to_variable_payload, update_instance
from dashvars.state.store import Action, create_action
from dashvars.utilities.intervals import calculate_interval

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)

AUTO_INTERVAL_PREFIX = "$__auto_interval"

# Quoted items keep punctuation: 1m,'1d 12h',30d
_ITEM = re.compile(r"([\"'])(.*?)\1|\w+")
_QUOTES = re.compile(r"[\"']+")

create_interval_options = create_action("templating/interval/createIntervalOptions")


def auto_interval_name(variable_name: str) -> str:
    return f"{AUTO_INTERVAL_PREFIX}_{variable_name}"


def parse_interval_options(query: str) -> list[VariableOption]:
    options = []
    for match in _ITEM.finditer(query or ""):
        text = _QUOTES.sub("", match.group(0)).strip()
        options.append(VariableOption(text=text, value=text))
    return options


def interval_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not create_interval_options.match(action):
        return state

    def mutate(variable: IntervalVariableModel) -> None:
        options = parse_interval_options(variable.query)
        if variable.auto:
            options.insert(0, VariableOption(text="auto", value=auto_interval_name(variable.name)))
        variable.options = options

    return update_instance(state, action.payload.id, mutate)


def update_auto_value(session: "TemplatingSession", variable: IntervalVariableModel) -> None:
    if not variable.auto or session.time_range is None:
        return
    _, interval = calculate_interval(session.time_range, variable.auto_count, variable.auto_min)
    session.resolver.set_builtin_value(auto_interval_name(variable.name), interval)
    # Unnamed form kept for older dashboards
    session.resolver.set_builtin_value(AUTO_INTERVAL_PREFIX, interval)
    logger.debug("[INTERVAL] Auto interval for %s is %s", variable.name, interval)


async def update_interval_variable_options(
    session: "TemplatingSession",
    variable: IntervalVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    session.dispatch(create_interval_options(to_variable_payload(identifier)))
    update_auto_value(session, session.get_variable(identifier.id))
    await validate_variable_selection_state(session, identifier)


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


async def _set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    await set_option_from_url(session, to_variable_identifier(variable), url_value)


def _get_save_model(variable: IntervalVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    model = strip_volatile(variable)
    model["options"] = []
    return model


@register_adapter(VariableType.INTERVAL)
def create_interval_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.INTERVAL,
        name="Interval",
        description="Define a timespan interval (ex 1m, 1h, 1d)",
        model_class=IntervalVariableModel,
        reducer=interval_variable_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=update_interval_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=lambda variable: variable.current.value,
    )
