"""Query variables - options fetched from a data source.

The refresh path:
    update_options -> data source lookup -> query runner -> result values
    -> regex extraction / dedupe / sort -> options -> validate selection

Results are dropped when a newer refresh of the same variable started, or
when the dashboard transaction changed, while the data source was queried.
"""

import logging
import re
from typing import TYPE_CHECKING, Any

from core import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    NONE_VARIABLE_TEXT,
    NONE_VARIABLE_VALUE,
    LoadingState,
    MetricFindValue,
    QueryVariableModel,
    UrlQueryValue,
    VariableOption,
    VariableRefresh,
    VariableSort,
    VariableType,
    to_variable_identifier,
)
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.config import get_search_wildcard
from dashvars.errors import AsyncRequestError
from dashvars.providers.query_runners import (
    RunnerArgs,
    build_request,
    run_request,
    to_metric_find_values,
)
from dashvars.serialization import strip_volatile
from dashvars.state.actions import (
    is_all_variable,
    set_option_as_current,
    set_option_from_url,
    validate_variable_selection_state,
)
from dashvars.state.options import current_request_id
from dashvars.state.shared_reducer import VariablesState, to_variable_payload, update_instance
from dashvars.state.store import Action, create_action
from dashvars.utilities.regex import VariableRegex, string_to_regex
from template_resolver import contains_variable, get_search_filter_scoped_var

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)

_FIRST_NUMBER = re.compile(r".*?(\d+).*")

# data: {"results": list[MetricFindValue], "templated_regex": VariableRegex | None}
update_variable_options = create_action("templating/query/updateVariableOptions")


# =============================================================================
# OPTION DERIVATION
# =============================================================================


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _numeric_sort_key(option: VariableOption) -> int:
    if not option.text:
        return -1
    match = _FIRST_NUMBER.match(option.text)
    if not match:
        return -1
    return int(match.group(1))


def sort_variable_values(options: list[VariableOption], sort_order: VariableSort) -> list[VariableOption]:
    """Order options: odd sort values ascend, even ones descend."""
    if sort_order == VariableSort.DISABLED:
        return options

    sort_type = (int(sort_order) + 1) // 2
    reverse = int(sort_order) % 2 == 0

    if sort_type == 1:
        options = sorted(options, key=lambda o: o.text)
    elif sort_type == 2:
        options = sorted(options, key=_numeric_sort_key)
    elif sort_type == 3:
        options = sorted(options, key=lambda o: o.text.lower())

    if reverse:
        options = list(reversed(options))
    return options


def metric_names_to_variable_values(
    variable_regex: VariableRegex | None,
    sort: VariableSort,
    metric_names: list[MetricFindValue],
) -> list[VariableOption]:
    """Turn query results into options.

    With a regex, named groups `text`/`value` win, then every match of a
    global regex, then the first capture group. Items the regex does not
    match are skipped. Options are unique by value.
    """
    options: list[VariableOption] = []

    for item in metric_names:
        text = _as_text(item.text if item.text is not None else item.value)
        value = _as_text(item.value if item.value is not None else item.text)

        if variable_regex is not None:
            matches = variable_regex.find_all(value)
            if not matches:
                continue

            value_match = next((m for m in matches if m.re.groupindex.get("value") and m.group("value")), None)
            text_match = next((m for m in matches if m.re.groupindex.get("text") and m.group("text")), None)
            first_match = next((m for m in matches if m.re.groups >= 1), None)

            if value_match or text_match:
                value = value_match.group("value") if value_match else text_match.group("text")
                text = text_match.group("text") if text_match else value_match.group("value")
            elif len(matches) > 1 and first_match:
                for match in matches:
                    options.append(VariableOption(text=match.group(1) or "", value=match.group(1) or ""))
                continue
            elif first_match:
                text = value = first_match.group(1) or ""

        options.append(VariableOption(text=text, value=value))

    unique: dict[str, VariableOption] = {}
    for option in options:
        unique.setdefault(option.value, option)

    return sort_variable_values(list(unique.values()), sort)


def query_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not update_variable_options.match(action):
        return state

    payload = action.payload
    results = payload.data["results"]
    templated_regex = payload.data.get("templated_regex")

    def mutate(variable: QueryVariableModel) -> None:
        options = metric_names_to_variable_values(templated_regex, variable.sort, results)
        if variable.include_all:
            options.insert(0, VariableOption(text=ALL_VARIABLE_TEXT, value=ALL_VARIABLE_VALUE))
        if not options:
            options.append(VariableOption(text=NONE_VARIABLE_TEXT, value=NONE_VARIABLE_VALUE, is_none=True))
        variable.options = options

    return update_instance(state, payload.id, mutate)


# =============================================================================
# REFRESH
# =============================================================================


def _templated_regex(session: "TemplatingSession", variable: QueryVariableModel) -> VariableRegex | None:
    if not variable.regex:
        return None
    return string_to_regex(session.resolver.replace(variable.regex, {}, "regex"))


async def update_query_variable_options(
    session: "TemplatingSession",
    variable: QueryVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    request_id = current_request_id(session, variable.id)
    transaction_uid = session.get_state().transaction.uid

    datasource = await session.datasources.get(variable.datasource, {})
    runner = session.query_runners.get_runner_for_datasource(datasource)

    scoped_vars = get_search_filter_scoped_var(variable.query, get_search_wildcard(), search_filter)
    target = runner.get_target(datasource, variable)
    request = build_request(target, session.time_range, scoped_vars)
    args = RunnerArgs(
        datasource=datasource,
        variable=variable,
        run_request=run_request,
        search_filter=search_filter,
        time_range=session.time_range,
        resolver=session.resolver,
        scoped_vars=scoped_vars,
    )

    logger.debug("[QUERY] Refreshing %s via %s runner", variable.name, runner.type.value)
    panel_data = await runner.run_request(args, request)

    if current_request_id(session, variable.id) != request_id:
        logger.debug("[QUERY] Dropping stale results for %s", variable.name)
        return
    if session.get_state().transaction.uid != transaction_uid:
        logger.debug("[QUERY] Dropping results for %s from a previous dashboard", variable.name)
        return

    if panel_data.state == LoadingState.ERROR:
        raise AsyncRequestError(panel_data.error)

    results = to_metric_find_values(panel_data.series)
    templated_regex = _templated_regex(session, variable)
    session.dispatch(
        update_variable_options(
            to_variable_payload(identifier, {"results": results, "templated_regex": templated_regex})
        )
    )

    if not search_filter:
        await validate_variable_selection_state(session, identifier)


# =============================================================================
# ADAPTER
# =============================================================================


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


async def _set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    await set_option_from_url(session, to_variable_identifier(variable), url_value)


def _get_save_model(variable: QueryVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    model = strip_volatile(variable)
    if variable.refresh != VariableRefresh.NEVER:
        model["options"] = []
    return model


def _get_value_for_url(variable: QueryVariableModel) -> Any:
    if is_all_variable(variable):
        return ALL_VARIABLE_TEXT
    return variable.current.value


def _depends_on(variable: QueryVariableModel, candidate) -> bool:
    datasource_uid = variable.datasource.uid if variable.datasource else None
    return contains_variable(variable.query, datasource_uid, variable.regex, candidate.name)


@register_adapter(VariableType.QUERY)
def create_query_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.QUERY,
        name="Query",
        description="Variable values are fetched from a datasource query",
        model_class=QueryVariableModel,
        reducer=query_variable_reducer,
        depends_on=_depends_on,
        set_value=_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=update_query_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=_get_value_for_url,
    )
