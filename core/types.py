"""Core data types for dashvars.

All variable models are dataclasses with attribute access. One model class per
variable kind; the `type` field is the discriminant used to look up the kind's
adapter in the adapter table.

Use attribute access: variable.current.value, variable.options[0].text, etc.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum, IntEnum
from typing import Any

# Reserved option values
ALL_VARIABLE_TEXT = "All"
ALL_VARIABLE_VALUE = "$__all"
NONE_VARIABLE_TEXT = "None"
NONE_VARIABLE_VALUE = ""

# Id given to variables before they are added to a dashboard
NEW_VARIABLE_ID = "00000000-0000-0000-0000-000000000000"

# Prefix for variable parameters in the URL query string
URL_VARIABLE_PREFIX = "var-"

# Value stored in a query string parameter (repeatable keys become lists)
UrlQueryValue = str | list[str] | None


class VariableType(str, Enum):
    """Variable kinds. The value is the `type` tag used in saved dashboards."""

    QUERY = "query"
    CUSTOM = "custom"
    CONSTANT = "constant"
    INTERVAL = "interval"
    TEXTBOX = "textbox"
    DATASOURCE = "datasource"
    ADHOC = "adhoc"
    SYSTEM = "system"


class VariableHide(IntEnum):
    DONT_HIDE = 0
    HIDE_LABEL = 1
    HIDE_VARIABLE = 2


class VariableRefresh(IntEnum):
    """When a refreshable variable re-fetches its options."""

    NEVER = 0
    ON_DASHBOARD_LOAD = 1
    ON_TIME_RANGE_CHANGED = 2


class VariableSort(IntEnum):
    """Sort order for query variable options.

    Odd values sort ascending, even values descending.
    """

    DISABLED = 0
    ALPHABETICAL_ASC = 1
    ALPHABETICAL_DESC = 2
    NUMERICAL_ASC = 3
    NUMERICAL_DESC = 4
    ALPHABETICAL_CASE_INSENSITIVE_ASC = 5
    ALPHABETICAL_CASE_INSENSITIVE_DESC = 6


class LoadingState(str, Enum):
    NOT_STARTED = "NotStarted"
    LOADING = "Loading"
    DONE = "Done"
    ERROR = "Error"


@dataclass
class VariableOption:
    """A selectable option, also used for a variable's current value.

    For multi-value selections text and value are parallel lists.
    """

    text: str | list[str] = ""
    value: str | list[str] = ""
    selected: bool = False
    is_none: bool = False


@dataclass
class DataSourceRef:
    """Reference to a data source by uid (may itself be a `$variable`)."""

    uid: str | None = None
    type: str | None = None


@dataclass
class AdHocVariableFilter:
    key: str
    operator: str
    value: str
    condition: str = ""


@dataclass
class ScopedVar:
    """Transient name binding supplied for a single interpolation call."""

    value: Any
    text: Any = None


# name -> ScopedVar (plain {"value": ..., "text": ...} dicts are accepted too)
ScopedVars = dict[str, Any]


@dataclass(frozen=True)
class SerializedError:
    """Error shape stored in state: message plus optional status code."""

    message: str
    code: int | str | None = None
    name: str | None = None


# =============================================================================
# VARIABLE MODELS
# =============================================================================


@dataclass
class VariableModel:
    """Fields shared by every variable kind."""

    name: str = ""
    type: VariableType = VariableType.QUERY
    id: str = NEW_VARIABLE_ID
    label: str | None = None
    description: str | None = None
    hide: VariableHide = VariableHide.DONT_HIDE
    skip_url_sync: bool = False
    index: int = -1
    global_: bool = False
    state: LoadingState = LoadingState.NOT_STARTED
    error: SerializedError | None = None
    current: VariableOption = field(default_factory=VariableOption)
    options: list[VariableOption] = field(default_factory=list)


@dataclass
class VariableWithOptions(VariableModel):
    query: str = ""


@dataclass
class VariableWithMultiSupport(VariableWithOptions):
    multi: bool = False
    include_all: bool = False
    all_value: str | None = None


@dataclass
class QueryVariableModel(VariableWithMultiSupport):
    type: VariableType = VariableType.QUERY
    # Legacy data sources use a string query, newer ones a structured dict
    query: Any = ""
    datasource: DataSourceRef | None = None
    definition: str = ""
    regex: str = ""
    refresh: VariableRefresh = VariableRefresh.ON_DASHBOARD_LOAD
    sort: VariableSort = VariableSort.DISABLED


@dataclass
class CustomVariableModel(VariableWithMultiSupport):
    type: VariableType = VariableType.CUSTOM


@dataclass
class DataSourceVariableModel(VariableWithMultiSupport):
    """`query` holds the data-source plugin id the options are filtered by."""

    type: VariableType = VariableType.DATASOURCE
    regex: str = ""
    refresh: VariableRefresh = VariableRefresh.ON_DASHBOARD_LOAD


@dataclass
class IntervalVariableModel(VariableWithOptions):
    type: VariableType = VariableType.INTERVAL
    query: str = "1m,10m,30m,1h,6h,12h,1d,7d,14d,30d"
    auto: bool = False
    auto_min: str = "10s"
    auto_count: int = 30
    refresh: VariableRefresh = VariableRefresh.ON_TIME_RANGE_CHANGED


@dataclass
class ConstantVariableModel(VariableWithOptions):
    type: VariableType = VariableType.CONSTANT
    hide: VariableHide = VariableHide.HIDE_VARIABLE


@dataclass
class TextBoxVariableModel(VariableWithOptions):
    type: VariableType = VariableType.TEXTBOX
    original_query: str | None = None


@dataclass
class AdHocVariableModel(VariableModel):
    type: VariableType = VariableType.ADHOC
    datasource: DataSourceRef | None = None
    filters: list[AdHocVariableFilter] = field(default_factory=list)


@dataclass
class SystemVariableModel(VariableModel):
    """Built-in variable such as __dashboard; current.value is a SystemValue."""

    type: VariableType = VariableType.SYSTEM
    hide: VariableHide = VariableHide.HIDE_VARIABLE
    skip_url_sync: bool = True


@dataclass(frozen=True)
class SystemValue:
    """Object value of a system variable.

    Field access works through attributes (`${__dashboard.uid}`); the plain
    reference renders `display`.
    """

    name: str
    uid: str | None = None
    id: int | None = None
    display: str = ""

    def __str__(self) -> str:
        return self.display or self.name


@dataclass(frozen=True)
class VariableIdentifier:
    """Address of a variable in the store."""

    type: VariableType
    id: str


def to_variable_identifier(variable: VariableModel) -> VariableIdentifier:
    return VariableIdentifier(type=variable.type, id=variable.id)


def is_adhoc(variable: Any) -> bool:
    return isinstance(variable, AdHocVariableModel)


def is_multi(variable: Any) -> bool:
    return isinstance(variable, VariableWithMultiSupport)


def has_options(variable: Any) -> bool:
    return isinstance(variable, VariableWithOptions)


def is_refreshable(variable: Any) -> bool:
    """Kinds that carry a `refresh` mode (query, datasource, interval)."""
    return isinstance(variable, (QueryVariableModel, DataSourceVariableModel, IntervalVariableModel))


# =============================================================================
# TIME RANGE
# =============================================================================


@dataclass(frozen=True)
class TimeRange:
    """Absolute time range plus the raw (relative) expressions it came from."""

    from_: datetime
    to: datetime
    raw_from: str = ""
    raw_to: str = ""

    @property
    def from_ms(self) -> int:
        return int(self.from_.timestamp() * 1000)

    @property
    def to_ms(self) -> int:
        return int(self.to.timestamp() * 1000)


def default_time_range() -> TimeRange:
    """Last six hours, the dashboard default."""
    now = datetime.now(UTC)
    return TimeRange(from_=now - timedelta(hours=6), to=now, raw_from="now-6h", raw_to="now")


# =============================================================================
# QUERY RESULTS
# =============================================================================


@dataclass
class MetricFindValue:
    text: Any = None
    value: Any = None
    expandable: bool | None = None


@dataclass
class Field:
    name: str
    values: list[Any] = field(default_factory=list)
    type: str = "string"


@dataclass
class DataFrame:
    fields: list[Field] = field(default_factory=list)
    ref_id: str | None = None
    name: str | None = None


@dataclass
class DataQueryRequest:
    """Request handed to a data source's query executor."""

    request_id: str
    targets: list[Any]
    range: TimeRange | None = None
    scoped_vars: ScopedVars = field(default_factory=dict)
    interval: str = ""
    interval_ms: int = 0
    app: str = "dashboard"


@dataclass
class PanelData:
    """Normalized runner result: series, loading state and time range."""

    series: list[Any] = field(default_factory=list)
    state: LoadingState = LoadingState.DONE
    time_range: TimeRange | None = None
    error: SerializedError | None = None
