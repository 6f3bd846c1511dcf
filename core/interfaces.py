"""Data source capability contracts consumed by the query runners.

A data source either exposes the legacy `metric_find_query` coroutine, or a
`variables` attribute implementing VariableSupport. The declared support type
decides which runner executes a query variable.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from core.types import DataQueryRequest, MetricFindValue, PanelData, TimeRange, VariableModel


class VariableSupportType(str, Enum):
    LEGACY = "legacy"
    STANDARD = "standard"
    CUSTOM = "custom"
    DATASOURCE = "datasource"


@dataclass
class MetricFindQueryOptions:
    """Options passed to `metric_find_query`.

    `range` is only set for variables refreshed on load or on time range change.
    """

    variable: VariableModel
    search_filter: str | None = None
    range: TimeRange | None = None


@runtime_checkable
class LegacyVariableSupportDataSource(Protocol):
    async def metric_find_query(
        self, query: Any, options: MetricFindQueryOptions
    ) -> list[MetricFindValue]: ...


class VariableSupport(Protocol):
    """The `variables` attribute of a data source with modern variable support.

    Standard support implements `to_data_query` and may override `query`;
    custom support always implements `query`; datasource support implements
    neither and relies on the data source's own query path.
    """

    def get_type(self) -> VariableSupportType: ...


class DataSourceApi(Protocol):
    """Minimal shape of a data source instance."""

    uid: str
    name: str


# Executes a request against a data source, optionally with a custom executor
QueryFunction = Callable[[DataQueryRequest], Awaitable[Any]]
RunRequest = Callable[..., Awaitable[PanelData]]
