"""Core types and interfaces for dashvars.

All data structures are dataclasses with attribute access.
Data sources implement one of the capability protocols in core.interfaces.
"""

from core.interfaces import (
    LegacyVariableSupportDataSource,
    MetricFindQueryOptions,
    VariableSupport,
    VariableSupportType,
)
from core.types import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    NEW_VARIABLE_ID,
    NONE_VARIABLE_TEXT,
    NONE_VARIABLE_VALUE,
    URL_VARIABLE_PREFIX,
    AdHocVariableFilter,
    AdHocVariableModel,
    ConstantVariableModel,
    CustomVariableModel,
    DataFrame,
    DataQueryRequest,
    DataSourceRef,
    DataSourceVariableModel,
    Field,
    IntervalVariableModel,
    LoadingState,
    MetricFindValue,
    PanelData,
    QueryVariableModel,
    ScopedVar,
    ScopedVars,
    SerializedError,
    SystemValue,
    SystemVariableModel,
    TextBoxVariableModel,
    TimeRange,
    UrlQueryValue,
    VariableHide,
    VariableIdentifier,
    VariableModel,
    VariableOption,
    VariableRefresh,
    VariableSort,
    VariableType,
    VariableWithMultiSupport,
    VariableWithOptions,
    default_time_range,
    has_options,
    is_adhoc,
    is_multi,
    is_refreshable,
    to_variable_identifier,
)

__all__ = [
    # Sentinels
    "ALL_VARIABLE_TEXT",
    "ALL_VARIABLE_VALUE",
    "NEW_VARIABLE_ID",
    "NONE_VARIABLE_TEXT",
    "NONE_VARIABLE_VALUE",
    "URL_VARIABLE_PREFIX",
    # Enums
    "LoadingState",
    "VariableHide",
    "VariableRefresh",
    "VariableSort",
    "VariableType",
    "VariableSupportType",
    # Models
    "AdHocVariableFilter",
    "AdHocVariableModel",
    "ConstantVariableModel",
    "CustomVariableModel",
    "DataSourceRef",
    "DataSourceVariableModel",
    "IntervalVariableModel",
    "QueryVariableModel",
    "SystemValue",
    "SystemVariableModel",
    "TextBoxVariableModel",
    "VariableIdentifier",
    "VariableModel",
    "VariableOption",
    "VariableWithMultiSupport",
    "VariableWithOptions",
    # Values
    "DataFrame",
    "DataQueryRequest",
    "Field",
    "MetricFindValue",
    "PanelData",
    "ScopedVar",
    "ScopedVars",
    "SerializedError",
    "TimeRange",
    "UrlQueryValue",
    # Interfaces
    "LegacyVariableSupportDataSource",
    "MetricFindQueryOptions",
    "VariableSupport",
    # Helpers
    "default_time_range",
    "has_options",
    "is_adhoc",
    "is_multi",
    "is_refreshable",
    "to_variable_identifier",
]
