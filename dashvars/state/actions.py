"""Templating transactions and selection flows.

All functions take the TemplatingSession as their first argument and change
state only by dispatching actions through `session.dispatch`.

Dashboard load:
    init_variables_transaction -> process_variables (dependency layers)
    -> process_variable (URL value wins over refresh) -> complete transaction

Time range change:
    on_time_range_updated -> time_range_updated for every variable refreshed
    on time range change, in dependency order -> start_refresh
"""

import asyncio
import copy
import logging
from typing import TYPE_CHECKING, Any

from core import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    URL_VARIABLE_PREFIX,
    LoadingState,
    TimeRange,
    UrlQueryValue,
    VariableIdentifier,
    VariableModel,
    VariableOption,
    VariableRefresh,
    VariableType,
    has_options,
    is_multi,
    is_refreshable,
    to_variable_identifier,
)
from dashvars.adapters import variable_adapters
from dashvars.errors import StorageLimitError
from dashvars.notifications import create_variable_error_notification
from dashvars.serialization import variable_from_dict
from dashvars.state.async_request import serialize_error
from dashvars.state.graph import DependencyGraph
from dashvars.state.options import run_options_refresh
from dashvars.state.shared_reducer import (
    add_variable,
    clean_variables,
    set_current_variable_value,
    to_variable_payload,
    variable_state_completed,
    variable_state_failed,
    variable_state_fetching,
    variable_state_not_started,
)
from dashvars.state.transaction import (
    TransactionStatus,
    variables_clear_transaction,
    variables_complete_transaction,
    variables_init_transaction,
)
from dashvars.sync.url import ensure_string_values, get_query_with_variables

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)

# Kinds without a refresh mode whose options are derived from their query
_OPTIONS_FROM_QUERY = (VariableType.CUSTOM, VariableType.CONSTANT, VariableType.TEXTBOX)


# =============================================================================
# SELECTION HELPERS
# =============================================================================


def is_all_variable(variable: VariableModel | None) -> bool:
    """True when the selection is the All sentinel."""
    if variable is None or variable.current is None or not variable.current.value:
        return False
    value = variable.current.value
    if isinstance(value, list):
        return value[0] == ALL_VARIABLE_VALUE
    return value == ALL_VARIABLE_VALUE


def get_current_text(variable: VariableModel) -> str:
    text = variable.current.text if variable.current else ""
    if isinstance(text, list):
        return ",".join(str(t) for t in text)
    return text or ""


def select_options_for_current_value(variable: VariableModel) -> list[VariableOption]:
    """Options whose value is part of the current selection, marked selected."""
    current_value = variable.current.value
    selected: list[VariableOption] = []
    for option in variable.options:
        if isinstance(current_value, list):
            matches = sum(1 for value in current_value if option.value == value)
        else:
            matches = 1 if option.value == current_value else 0
        for _ in range(matches):
            selected.append(VariableOption(text=option.text, value=option.value, selected=True, is_none=option.is_none))
    return selected


def _to_single(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else ""
    return value


def _to_multi(value: Any) -> list:
    return value if isinstance(value, list) else [value]


def align_current_with_multi(current: VariableOption | None, multi: bool) -> VariableOption | None:
    """Shape a selection as a list for multi variables and a scalar otherwise."""
    if current is None:
        return None
    if multi and not isinstance(current.value, list):
        return VariableOption(text=_to_multi(current.text), value=_to_multi(current.value), selected=current.selected)
    if not multi and isinstance(current.value, list):
        return VariableOption(text=_to_single(current.text), value=_to_single(current.value), selected=current.selected)
    return current


def fix_selected_inconsistency(model: VariableModel) -> VariableModel:
    """Make `selected` flags agree with `current`; select the first option when none match."""
    if not has_options(model) or not model.options:
        return model

    model = copy.deepcopy(model)
    values = _to_multi(model.current.value)
    found = False
    for option in model.options:
        option.selected = option.value in values
        found = found or option.selected

    if not found:
        first = model.options[0]
        first.selected = True
        current = VariableOption(text=first.text, value=first.value, selected=True)
        model.current = align_current_with_multi(current, getattr(model, "multi", False))
    return model


# =============================================================================
# VALUE CHANGES
# =============================================================================


async def set_option_as_current(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    current: VariableOption,
    emit_changes: bool = False,
) -> None:
    session.dispatch(set_current_variable_value(to_variable_payload(identifier, {"option": current})))
    await variable_updated(session, identifier, emit_changes)


async def set_option_from_url(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    url_value: UrlQueryValue,
) -> None:
    """Select the option named by a URL value, refreshing options first if needed.

    Values that match no option are still applied (text = value).
    """
    string_url_value = ensure_string_values(url_value)
    variable = session.get_variable(identifier.id)

    if getattr(variable, "refresh", VariableRefresh.NEVER) != VariableRefresh.NEVER:
        await update_options(session, to_variable_identifier(variable))

    variable = session.get_variable(identifier.id)
    option = next(
        (o for o in variable.options if o.text == string_url_value or o.value == string_url_value),
        None,
    )

    if option is None and is_multi(variable):
        if variable.all_value and string_url_value == variable.all_value:
            option = VariableOption(text=ALL_VARIABLE_TEXT, value=ALL_VARIABLE_VALUE)

    if option is None:
        default_text: Any = string_url_value
        if isinstance(string_url_value, list):
            texts_by_value = {}
            for o in variable.options:
                texts_by_value.setdefault(o.value, o.text)
            default_text = [texts_by_value.get(item, item) for item in string_url_value]
        option = VariableOption(text=default_text, value=string_url_value)

    if is_multi(variable):
        option = align_current_with_multi(
            VariableOption(text=_to_multi(option.text), value=_to_multi(option.value)),
            variable.multi,
        )

    await variable_adapters.get(variable.type).set_value(session, variable, option, False)


async def validate_variable_selection_state(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    default_value: str | None = None,
) -> None:
    """Keep `current` pointing at an existing option.

    Tries, in order: the current text, `default_value`, the first option, and
    finally an empty selection.
    """
    variable = session.get_variable(identifier.id)
    set_value = variable_adapters.get(variable.type).set_value

    if isinstance(variable.current.value, list):
        selected = select_options_for_current_value(variable)
        if not selected:
            first = variable.options[0] if variable.options else VariableOption()
            await set_value(session, variable, first, False)
            return
        option = VariableOption(
            text=[o.text for o in selected],
            value=[o.value for o in selected],
            selected=True,
        )
        await set_value(session, variable, option, False)
        return

    text = get_current_text(variable)
    option = next((o for o in variable.options if o.text == text), None)
    if option is not None:
        await set_value(session, variable, option, False)
        return

    if default_value:
        option = next((o for o in variable.options if o.text == default_value), None)
        if option is not None:
            await set_value(session, variable, option, False)
            return

    if variable.options:
        await set_value(session, variable, variable.options[0], False)
        return

    await set_value(session, variable, VariableOption(), False)


def sync_url(session: "TemplatingSession") -> bool:
    """Mirror every variable value into the location query.

    A rejected update is reported as a notification; the variable state is
    kept either way.
    """
    try:
        session.location.partial(get_query_with_variables(session), replace=True)
    except StorageLimitError as e:
        logger.warning("[URL] Could not update location: %s", e)
        session.notify(create_variable_error_notification("Could not update URL:", e))
        return False
    return True


async def variable_updated(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    emit_changes: bool = False,
) -> None:
    """Refresh dependents of a changed variable, then optionally emit the change.

    While the dashboard is still loading the cascade is skipped; process_variables
    already refreshes every variable in dependency order.
    """
    variable = session.get_variable(identifier.id)

    if session.get_state().transaction.status == TransactionStatus.FETCHING:
        if getattr(variable, "refresh", VariableRefresh.NEVER) == VariableRefresh.NEVER:
            complete_variable_loading(session, identifier)
        return

    graph = DependencyGraph(session.get_variables())
    dependents = graph.optimized_dependents(variable.name)
    if dependents:
        logger.debug(
            "[TRANSACTION] %s changed, refreshing %s", variable.name, ", ".join(d.name for d in dependents)
        )
        await asyncio.gather(*(update_options(session, to_variable_identifier(d)) for d in dependents))

    if emit_changes:
        sync_url(session)
        session.dashboard.template_variable_value_updated()
        session.dashboard.start_refresh()


# =============================================================================
# OPTIONS REFRESH
# =============================================================================


def complete_variable_loading(session: "TemplatingSession", identifier: VariableIdentifier) -> None:
    variable = session.get_variable(identifier.id)
    if variable.state != LoadingState.DONE:
        session.dispatch(variable_state_completed(to_variable_payload(identifier)))


async def update_options(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    rethrow: bool = False,
    search_filter: str | None = None,
) -> None:
    """Refresh one variable's options through its adapter.

    Failures mark the variable failed. They are notified unless `rethrow`
    is set, in which case the caller handles them. A refresh superseded by a
    newer one for the same variable leaves the state to that newer refresh.
    """
    variable = session.get_variable(identifier.id)
    try:
        session.dispatch(variable_state_fetching(to_variable_payload(variable)))
        if not await run_options_refresh(session, identifier, search_filter):
            return
        complete_variable_loading(session, identifier)
    except Exception as e:
        session.dispatch(variable_state_failed(to_variable_payload(variable, {"error": serialize_error(e)})))
        if rethrow:
            raise
        logger.error("[TRANSACTION] Error updating options of %s: %s", variable.name, e)
        session.notify(create_variable_error_notification("Error updating options:", e, identifier))


# =============================================================================
# DASHBOARD LOAD
# =============================================================================


def init_dashboard_templating(session: "TemplatingSession", templating_list: list[dict | VariableModel]) -> None:
    """Add the saved variables to the store, skipping kinds without an adapter."""
    order_index = len(session.get_state().variables)
    for item in templating_list:
        model_type = item.get("type") if isinstance(item, dict) else item.type
        if variable_adapters.get_if_exists(model_type) is None:
            logger.warning("[TRANSACTION] Skipping variable of unknown type %r", model_type)
            continue

        model = variable_from_dict(item) if isinstance(item, dict) else copy.deepcopy(item)
        if model.id in session.get_state().variables:
            logger.warning("[TRANSACTION] Skipping duplicate variable %r", model.name)
            continue

        model = fix_selected_inconsistency(model)
        session.dispatch(
            add_variable(to_variable_payload(model, {"global": False, "index": order_index, "model": model}))
        )
        order_index += 1

    session.resolver.update_time_range(session.time_range)
    for variable in session.get_variables():
        session.dispatch(variable_state_not_started(to_variable_payload(variable)))


async def process_variable(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    query_params: dict[str, UrlQueryValue],
) -> None:
    variable = session.get_variable(identifier.id)
    url_value = query_params.get(URL_VARIABLE_PREFIX + variable.name)
    if url_value is not None:
        adapter = variable_adapters.get(variable.type)
        await adapter.set_value_from_url(session, variable, ensure_string_values(url_value))
        return

    if is_refreshable(variable) and variable.refresh in (
        VariableRefresh.ON_DASHBOARD_LOAD,
        VariableRefresh.ON_TIME_RANGE_CHANGED,
    ):
        await update_options(session, identifier)
        return

    if variable.type in _OPTIONS_FROM_QUERY:
        # Options are derived from the query itself, rebuild them
        await update_options(session, identifier)
        return

    complete_variable_loading(session, identifier)


async def process_variables(session: "TemplatingSession") -> None:
    """Process every variable, each only after the variables it depends on."""
    query_params = session.location.get_search_object()
    graph = DependencyGraph(session.get_variables())
    for layer in graph.layers():
        await asyncio.gather(
            *(process_variable(session, to_variable_identifier(variable), query_params) for variable in layer)
        )


def clean_up_variables(session: "TemplatingSession") -> None:
    session.dispatch(clean_variables())
    session.dispatch(variables_clear_transaction())


async def init_variables_transaction(
    session: "TemplatingSession",
    uid: str | None,
    templating_list: list[dict | VariableModel],
) -> None:
    """Load a dashboard's variables and refresh them once."""
    try:
        if session.get_state().transaction.uid is not None:
            # A previous dashboard's variables are still loaded or loading
            clean_up_variables(session)

        session.dispatch(variables_init_transaction({"uid": uid}))
        session.add_system_variables()
        init_dashboard_templating(session, templating_list)
        await process_variables(session)
        session.dispatch(variables_complete_transaction({"uid": uid}))
        logger.info("[TRANSACTION] Initialized %d variables for dashboard %s", len(session.get_variables()), uid)
    except Exception as e:
        logger.exception("[TRANSACTION] Error initializing variables for dashboard %s", uid)
        session.notify(create_variable_error_notification("Error initializing variables:", e))


# =============================================================================
# TIME RANGE
# =============================================================================


async def time_range_updated(session: "TemplatingSession", identifier: VariableIdentifier) -> bool:
    """Refresh one variable for a new time range.

    Returns:
        True if its options changed.
    """
    previous_options = copy.deepcopy(session.get_variable(identifier.id).options)
    await update_options(session, identifier, rethrow=True)
    updated_options = session.get_variable(identifier.id).options

    if previous_options != updated_options:
        session.dashboard.template_variable_value_updated()
        return True
    return False


async def on_time_range_updated(session: "TemplatingSession", time_range: TimeRange) -> None:
    """Apply a new time range and refresh the variables that depend on it."""
    session.time_range = time_range
    session.resolver.update_time_range(time_range)

    targets = [
        variable.name
        for variable in session.get_variables()
        if is_refreshable(variable) and variable.refresh == VariableRefresh.ON_TIME_RANGE_CHANGED
    ]

    failed = False
    graph = DependencyGraph(session.get_variables())
    for layer in graph.layers(targets):
        results = await asyncio.gather(
            *(time_range_updated(session, to_variable_identifier(variable)) for variable in layer),
            return_exceptions=True,
        )
        for variable, result in zip(layer, results, strict=True):
            if isinstance(result, Exception):
                failed = True
                logger.error("[TRANSACTION] Time range refresh of %s failed: %s", variable.name, result)
                session.notify(
                    create_variable_error_notification(
                        "Template variable service failed", result, to_variable_identifier(variable)
                    )
                )

    if not failed:
        session.dashboard.start_refresh()
