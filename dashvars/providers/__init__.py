"""Data sources and the query runners that execute variable queries against them."""

from dashvars.providers.query_runners import (
    VARIABLE_DUMMY_REF_ID,
    CustomQueryRunner,
    DatasourceQueryRunner,
    LegacyQueryRunner,
    QueryRunners,
    RunnerArgs,
    StandardQueryRunner,
    build_request,
    run_request,
    to_metric_find_values,
)
from dashvars.providers.registry import (
    DEFAULT_DATASOURCE,
    DataSourceConfig,
    DataSourceInstanceSettings,
    DataSourceRegistry,
)
from dashvars.providers.simplejson import SIMPLEJSON_PLUGIN_ID, SimpleJsonDataSource, create_simplejson_datasource

__all__ = [
    "CustomQueryRunner",
    "DEFAULT_DATASOURCE",
    "DataSourceConfig",
    "DataSourceInstanceSettings",
    "DataSourceRegistry",
    "DatasourceQueryRunner",
    "LegacyQueryRunner",
    "QueryRunners",
    "RunnerArgs",
    "SIMPLEJSON_PLUGIN_ID",
    "SimpleJsonDataSource",
    "StandardQueryRunner",
    "VARIABLE_DUMMY_REF_ID",
    "build_request",
    "create_simplejson_datasource",
    "run_request",
    "to_metric_find_values",
]
