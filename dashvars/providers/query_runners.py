"""Query runners for query variables.

The runner is picked from the data source's variable support:

- legacy: the data source has `metric_find_query` and no `variables`
- standard: `variables.to_data_query` builds the query; a `variables.query`
  override replaces the generic execution
- custom: `variables.query` executes the already built target
- datasource: the data source's own query path with a dummy refId

Every runner resolves to a PanelData (series, state, time range).
"""

import copy
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core import (
    DataFrame,
    DataQueryRequest,
    LoadingState,
    MetricFindQueryOptions,
    MetricFindValue,
    PanelData,
    ScopedVars,
    TimeRange,
    VariableModel,
    VariableRefresh,
    VariableSupportType,
)
from dashvars.errors import DashvarsError, UnknownVariableSupportError
from dashvars.state.async_request import serialize_error

if TYPE_CHECKING:
    from template_resolver import TemplateResolver

logger = logging.getLogger(__name__)

VARIABLE_DUMMY_REF_ID = "variable-query"

RunRequest = Callable[..., Awaitable[PanelData]]


@dataclass
class RunnerArgs:
    datasource: Any
    variable: VariableModel
    run_request: RunRequest
    search_filter: str | None = None
    time_range: TimeRange | None = None
    resolver: "TemplateResolver | None" = None
    scoped_vars: ScopedVars = field(default_factory=dict)


# =============================================================================
# CAPABILITIES
# =============================================================================


def _support_type(datasource: Any) -> VariableSupportType | None:
    variables = getattr(datasource, "variables", None)
    get_type = getattr(variables, "get_type", None)
    if not callable(get_type):
        return None
    return get_type()


def has_legacy_variable_support(datasource: Any) -> bool:
    return callable(getattr(datasource, "metric_find_query", None)) and getattr(datasource, "variables", None) is None


def has_standard_variable_support(datasource: Any) -> bool:
    return _support_type(datasource) == VariableSupportType.STANDARD and callable(
        getattr(datasource.variables, "to_data_query", None)
    )


def has_custom_variable_support(datasource: Any) -> bool:
    return _support_type(datasource) == VariableSupportType.CUSTOM and callable(
        getattr(datasource.variables, "query", None)
    )


def has_datasource_variable_support(datasource: Any) -> bool:
    return _support_type(datasource) == VariableSupportType.DATASOURCE


def _custom_query(datasource: Any) -> Callable | None:
    query = getattr(datasource.variables, "query", None)
    return query if callable(query) else None


# =============================================================================
# GENERIC EXECUTION
# =============================================================================


async def run_request(
    datasource: Any,
    request: DataQueryRequest,
    query_function: Callable[[DataQueryRequest], Awaitable[Any]] | None = None,
) -> PanelData:
    """Execute a request and normalize the response.

    Errors raised by the data source become a PanelData in the Error state.
    """
    executor = query_function or getattr(datasource, "query", None)
    if executor is None:
        return PanelData(
            state=LoadingState.ERROR,
            time_range=request.range,
            error=serialize_error(DashvarsError("Data source does not support queries")),
        )

    try:
        response = await executor(request)
    except Exception as e:
        logger.warning("[QUERY] Request %s failed: %s", request.request_id, e)
        return PanelData(state=LoadingState.ERROR, time_range=request.range, error=serialize_error(e))

    if isinstance(response, PanelData):
        return response
    series = getattr(response, "data", response)
    return PanelData(series=list(series or []), state=LoadingState.DONE, time_range=request.range)


def _as_metric_find_value(item: Any) -> MetricFindValue | None:
    if isinstance(item, MetricFindValue):
        return item
    if isinstance(item, dict) and ("text" in item or "value" in item):
        return MetricFindValue(text=item.get("text"), value=item.get("value"), expandable=item.get("expandable"))
    return None


def _find_field(frame: DataFrame, name: str):
    return next((f for f in frame.fields if f.name.lower() == name), None)


def to_metric_find_values(series: list[Any]) -> list[MetricFindValue]:
    """Normalize runner output (plain values or data frames) to MetricFindValues.

    Raises:
        DashvarsError: If a frame has no usable field.
    """
    if not series:
        return []

    values = [_as_metric_find_value(item) for item in series]
    if all(v is not None for v in values):
        return values

    results: list[MetricFindValue] = []
    for frame in series:
        if not isinstance(frame, DataFrame):
            results.append(MetricFindValue(text=str(frame), value=str(frame)))
            continue

        text_field = _find_field(frame, "text")
        value_field = _find_field(frame, "value")
        expandable_field = _find_field(frame, "expandable")
        if text_field is None and value_field is None:
            text_field = next((f for f in frame.fields if f.type == "string"), None)
            if text_field is None:
                raise DashvarsError("Couldn't find any field of type string in the results.")
        text_field = text_field or value_field
        value_field = value_field or text_field

        for index, text in enumerate(text_field.values):
            results.append(
                MetricFindValue(
                    text=text,
                    value=value_field.values[index] if index < len(value_field.values) else text,
                    expandable=expandable_field.values[index] if expandable_field else None,
                )
            )
    return results


# =============================================================================
# RUNNERS
# =============================================================================


class LegacyQueryRunner:
    type = VariableSupportType.LEGACY

    def can_run(self, datasource: Any) -> bool:
        return has_legacy_variable_support(datasource)

    def get_target(self, datasource: Any, variable: VariableModel) -> Any:
        return variable.query

    async def run_request(self, args: RunnerArgs, request: DataQueryRequest) -> PanelData:
        variable = args.variable
        refresh = getattr(variable, "refresh", VariableRefresh.NEVER)
        time_range = (
            args.time_range
            if refresh in (VariableRefresh.ON_TIME_RANGE_CHANGED, VariableRefresh.ON_DASHBOARD_LOAD)
            else None
        )

        query = self.get_target(args.datasource, variable)
        if args.resolver is not None and isinstance(query, str):
            query = args.resolver.replace(query, args.scoped_vars)

        values = await args.datasource.metric_find_query(
            query,
            MetricFindQueryOptions(variable=variable, search_filter=args.search_filter, range=time_range),
        )
        return PanelData(series=list(values or []), state=LoadingState.DONE, time_range=time_range)


class StandardQueryRunner:
    type = VariableSupportType.STANDARD

    def can_run(self, datasource: Any) -> bool:
        return has_standard_variable_support(datasource)

    def get_target(self, datasource: Any, variable: VariableModel) -> Any:
        return datasource.variables.to_data_query(variable.query)

    async def run_request(self, args: RunnerArgs, request: DataQueryRequest) -> PanelData:
        custom_query = _custom_query(args.datasource)
        if custom_query is not None:
            return await args.run_request(args.datasource, request, custom_query)
        return await args.run_request(args.datasource, request)


class CustomQueryRunner:
    type = VariableSupportType.CUSTOM

    def can_run(self, datasource: Any) -> bool:
        return has_custom_variable_support(datasource)

    def get_target(self, datasource: Any, variable: VariableModel) -> Any:
        return variable.query

    async def run_request(self, args: RunnerArgs, request: DataQueryRequest) -> PanelData:
        return await args.run_request(args.datasource, request, args.datasource.variables.query)


class DatasourceQueryRunner:
    type = VariableSupportType.DATASOURCE

    def can_run(self, datasource: Any) -> bool:
        return has_datasource_variable_support(datasource)

    def get_target(self, datasource: Any, variable: VariableModel) -> Any:
        query = variable.query
        if isinstance(query, dict):
            if query.get("refId"):
                return query
            return {**copy.deepcopy(query), "refId": VARIABLE_DUMMY_REF_ID}
        return {"refId": VARIABLE_DUMMY_REF_ID, "query": query}

    async def run_request(self, args: RunnerArgs, request: DataQueryRequest) -> PanelData:
        return await args.run_request(args.datasource, request)


class QueryRunners:
    def __init__(self):
        self._runners = [
            LegacyQueryRunner(),
            StandardQueryRunner(),
            CustomQueryRunner(),
            DatasourceQueryRunner(),
        ]

    def get_runner_for_datasource(self, datasource: Any):
        """Pick the runner for a data source.

        Raises:
            UnknownVariableSupportError: If the data source declares no known support.
        """
        for runner in self._runners:
            if runner.can_run(datasource):
                return runner
        raise UnknownVariableSupportError(getattr(datasource, "name", None))


def build_request(
    target: Any,
    time_range: TimeRange | None,
    scoped_vars: ScopedVars | None = None,
) -> DataQueryRequest:
    """Request for a single variable query target."""
    return DataQueryRequest(
        request_id=f"variable-{uuid.uuid4().hex[:8]}",
        targets=[target],
        range=time_range,
        scoped_vars=scoped_vars or {},
        app="dashboard",
    )
