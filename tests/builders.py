"""Builders and fake data sources shared by the tests."""

from datetime import UTC, datetime

from core import (
    AdHocVariableFilter,
    AdHocVariableModel,
    ConstantVariableModel,
    CustomVariableModel,
    DataSourceRef,
    DataSourceVariableModel,
    IntervalVariableModel,
    MetricFindValue,
    PanelData,
    QueryVariableModel,
    TextBoxVariableModel,
    TimeRange,
    VariableOption,
    VariableRefresh,
    VariableSupportType,
)
from dashvars.dashboard import Dashboard
from dashvars.providers.registry import DataSourceInstanceSettings, DataSourceRegistry
from dashvars.session import TemplatingSession
from dashvars.sync.location import LocationService


def option(value, text=None, selected=False) -> VariableOption:
    return VariableOption(text=value if text is None else text, value=value, selected=selected)


def current(value, text=None) -> VariableOption:
    return VariableOption(text=value if text is None else text, value=value, selected=True)


def query_variable(name: str, query: str = "", datasource: str | None = "legacy", **kwargs) -> QueryVariableModel:
    return QueryVariableModel(
        name=name,
        id=name,
        query=query,
        datasource=DataSourceRef(uid=datasource) if datasource else None,
        **kwargs,
    )


def custom_variable(name: str, query: str, **kwargs) -> CustomVariableModel:
    return CustomVariableModel(name=name, id=name, query=query, **kwargs)


def constant_variable(name: str, query: str, **kwargs) -> ConstantVariableModel:
    return ConstantVariableModel(name=name, id=name, query=query, **kwargs)


def textbox_variable(name: str, query: str, **kwargs) -> TextBoxVariableModel:
    return TextBoxVariableModel(name=name, id=name, query=query, **kwargs)


def interval_variable(name: str, query: str = "1m,10m,1h", **kwargs) -> IntervalVariableModel:
    return IntervalVariableModel(name=name, id=name, query=query, **kwargs)


def datasource_variable(name: str, plugin_type: str, **kwargs) -> DataSourceVariableModel:
    return DataSourceVariableModel(name=name, id=name, query=plugin_type, **kwargs)


def adhoc_variable(name: str, datasource: str = "legacy", filters=None, **kwargs) -> AdHocVariableModel:
    return AdHocVariableModel(
        name=name,
        id=name,
        datasource=DataSourceRef(uid=datasource),
        filters=list(filters or []),
        **kwargs,
    )


def adhoc_filter(key: str, operator: str, value: str) -> AdHocVariableFilter:
    return AdHocVariableFilter(key=key, operator=operator, value=value)


def time_range(start_hour: int = 0, end_hour: int = 6) -> TimeRange:
    return TimeRange(
        from_=datetime(2024, 1, 1, start_hour, tzinfo=UTC),
        to=datetime(2024, 1, 1, end_hour, tzinfo=UTC),
        raw_from="now-6h",
        raw_to="now",
    )


# =============================================================================
# FAKE DATA SOURCES
# =============================================================================


class FakeLegacyDataSource:
    """metric_find_query over a fixed query -> values table.

    Queries are matched after interpolation. `fail` maps queries to the
    exception raised for them; `hooks` maps queries to coroutines awaited
    before answering (used to control completion order).
    """

    def __init__(self, name: str = "legacy", values: dict | None = None, uid: str | None = None):
        self.name = name
        self.uid = uid or name
        self.values = dict(values or {})
        self.fail: dict[str, Exception] = {}
        self.hooks: dict = {}
        self.calls: list[tuple] = []

    async def metric_find_query(self, query, options):
        self.calls.append((query, options))
        hook = self.hooks.get(query)
        if hook is not None:
            await hook()
        if query in self.fail:
            raise self.fail[query]
        return [MetricFindValue(text=v, value=v) for v in self.values.get(query, [])]


class _Support:
    def __init__(self, support_type: VariableSupportType, owner):
        self._type = support_type
        self._owner = owner

    def get_type(self):
        return self._type


class _StandardSupport(_Support):
    def to_data_query(self, query):
        return {"refId": "A", "expr": query}


class _CustomSupport(_Support):
    async def query(self, request):
        self._owner.requests.append(request)
        return PanelData(series=[MetricFindValue(text="custom", value="custom")], time_range=request.range)


class FakeModernDataSource:
    """Data source declaring standard, custom or datasource variable support."""

    def __init__(self, support_type: VariableSupportType, name: str = "modern", results=None):
        self.name = name
        self.uid = name
        self.requests: list = []
        self.results = results if results is not None else [MetricFindValue(text="x", value="x")]
        support_class = {
            VariableSupportType.STANDARD: _StandardSupport,
            VariableSupportType.CUSTOM: _CustomSupport,
        }.get(support_type, _Support)
        self.variables = support_class(support_type, self)

    async def query(self, request):
        self.requests.append(request)
        return PanelData(series=list(self.results), time_range=request.range)


def make_registry(*datasources, default: str | None = None, plugin_type: str = "fake") -> DataSourceRegistry:
    registry = DataSourceRegistry()
    for datasource in datasources:
        registry.register(
            DataSourceInstanceSettings(
                uid=datasource.uid,
                name=datasource.name,
                type=plugin_type,
                is_default=datasource.uid == default,
            ),
            instance=datasource,
        )
    return registry


async def make_session(
    templating_list,
    *datasources,
    query: dict | None = None,
    time_range_value: TimeRange | None = None,
    dashboard: Dashboard | None = None,
    db_path: str | None = None,
) -> TemplatingSession:
    session = TemplatingSession(
        datasources=make_registry(*datasources),
        location=LocationService(max_length=4096),
        time_range=time_range_value or time_range(),
        db_path=db_path,
    )
    await session.init(dashboard or Dashboard(uid="dash-1", title="Ops"), templating_list, query=query)
    return session


__all__ = [
    "FakeLegacyDataSource",
    "FakeModernDataSource",
    "VariableRefresh",
    "adhoc_filter",
    "adhoc_variable",
    "constant_variable",
    "current",
    "custom_variable",
    "datasource_variable",
    "interval_variable",
    "make_registry",
    "make_session",
    "option",
    "query_variable",
    "textbox_variable",
    "time_range",
]
