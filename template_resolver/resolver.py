"""Template variable interpolation.

Replaces `$name`, `[[name:fmt]]` and `${name.path:fmt}` references in a string
with formatted variable values. Scoped vars win over registry variables;
unknown names are left untouched.

Usage:
    resolver = TemplateResolver()
    resolver.init(variables, time_range)
    resolver.replace("rate(http_requests{job=~\"$job\"}[5m])")

Inside a dashboard session the resolver reads variables straight from the
session store through ResolverDependencies, so every call sees the current
snapshot.
"""

import html
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    AdHocVariableFilter,
    AdHocVariableModel,
    ScopedVar,
    ScopedVars,
    SystemVariableModel,
    TimeRange,
    VariableModel,
    VariableOption,
    is_adhoc,
)
from template_resolver.patterns import VARIABLE_REGEX, get_variable_name
from template_resolver.registry import (
    FormatOptions,
    FormatRegistryID,
    get_registry,
)

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for 'no binding', distinct from a binding whose value is None."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# Built-in names filled from the time range on every lookup
BUILTIN_FROM = "__from"
BUILTIN_TO = "__to"

_PATH_TOKEN = re.compile(r"[^.\[\]]+|\[(?:(-?\d+)|([\"'])(.*?)\2)\]")


def _adapter_value_for_url(variable: VariableModel) -> Any:
    from dashvars.variables import variable_adapters

    return variable_adapters.get(variable.type).get_value_for_url(variable)


@dataclass
class ResolverDependencies:
    """Where the resolver reads variables and data-source settings from."""

    get_variables: Callable[[], list[VariableModel]]
    get_variable_with_name: Callable[[str], VariableModel | None]
    get_value_for_url: Callable[[VariableModel], Any] = _adapter_value_for_url
    get_data_source_settings: Callable[[str], Any] = lambda name: None


def _scoped_attr(scoped: Any, key: str) -> Any:
    if isinstance(scoped, dict):
        return scoped.get(key)
    return getattr(scoped, key, None)


def _get_key(obj: Any, key: str | int) -> Any:
    if obj is None:
        return MISSING
    if isinstance(obj, dict):
        if key in obj:
            return obj[key]
        return obj.get(str(key), MISSING)
    if isinstance(obj, (list, tuple, str)):
        try:
            return obj[int(key)]
        except (ValueError, IndexError):
            return MISSING
    if isinstance(key, int):
        return MISSING
    return getattr(obj, key, MISSING)


def compile_field_accessor(path: str) -> Callable[[Any], Any]:
    """Build a getter for a dotted/bracketed path like `a.b[0].c`.

    The getter returns MISSING when any step is absent.
    """
    keys: list[str | int] = []
    for match in _PATH_TOKEN.finditer(path):
        if match.group(1) is not None:
            keys.append(int(match.group(1)))
        elif match.group(3) is not None:
            keys.append(match.group(3))
        else:
            keys.append(match.group(0))

    def accessor(obj: Any) -> Any:
        for key in keys:
            obj = _get_key(obj, key)
            if obj is MISSING:
                return MISSING
        return obj

    return accessor


class TemplateResolver:
    """Interpolation engine over a variable registry snapshot."""

    def __init__(self, dependencies: ResolverDependencies | None = None):
        self._dependencies = dependencies
        self._variables: list[VariableModel] = []
        self._time_range: TimeRange | None = None
        self._builtin_values: dict[str, Any] = {}
        self._field_accessor_cache: dict[str, Callable[[Any], Any]] = {}

    # =========================================================================
    # Registry access
    # =========================================================================

    def init(self, variables: list[VariableModel], time_range: TimeRange | None = None) -> None:
        """Use a fixed variable list (when not backed by a session store)."""
        self._variables = list(variables)
        self._time_range = time_range

    def update_time_range(self, time_range: TimeRange | None) -> None:
        self._time_range = time_range

    def set_builtin_value(self, name: str, value: Any) -> None:
        """Publish a system value, e.g. `$__auto_interval_<name>` -> '5m'."""
        self._builtin_values[name] = value

    def get_variables(self) -> list[VariableModel]:
        if self._dependencies is not None:
            return self._dependencies.get_variables()
        return list(self._variables)

    def _builtin_variable(self, name: str) -> VariableModel | None:
        if self._time_range is None or name not in (BUILTIN_FROM, BUILTIN_TO):
            return None
        millis = self._time_range.from_ms if name == BUILTIN_FROM else self._time_range.to_ms
        text = str(millis)
        return SystemVariableModel(name=name, id=name, current=VariableOption(text=text, value=text))

    def _get_variable_at_index(self, name: str | None) -> VariableModel | None:
        if not name:
            return None
        builtin = self._builtin_variable(name)
        if builtin is not None:
            return builtin
        if self._dependencies is not None:
            return self._dependencies.get_variable_with_name(name)
        return next((v for v in self._variables if v.name == name), None)

    def _get_value_for_url(self, variable: VariableModel) -> Any:
        if self._dependencies is not None:
            return self._dependencies.get_value_for_url(variable)
        return _adapter_value_for_url(variable)

    # =========================================================================
    # Name helpers
    # =========================================================================

    def get_variable_name(self, expression: str) -> str | None:
        return get_variable_name(expression)

    def variable_exists(self, expression: str) -> bool:
        name = self.get_variable_name(expression)
        return bool(name) and self._get_variable_at_index(name) is not None

    def highlight_variables_as_html(self, text: str) -> str:
        """Wrap known variable references in a span, escaping the rest."""
        if not text or not isinstance(text, str):
            return text

        escaped = html.escape(text, quote=True)

        def wrap(match: re.Match) -> str:
            var1, var2, _fmt2, var3, _path, _fmt3 = match.groups()
            if self._get_variable_at_index(var1 or var2 or var3) is not None:
                return f'<span class="template-variable">{match.group(0)}</span>'
            return match.group(0)

        return VARIABLE_REGEX.sub(wrap, escaped)

    # =========================================================================
    # All value
    # =========================================================================

    @staticmethod
    def is_all_value(value: Any) -> bool:
        if isinstance(value, list):
            return bool(value) and value[0] == ALL_VARIABLE_VALUE
        return value == ALL_VARIABLE_VALUE

    @staticmethod
    def get_all_value(variable: VariableModel) -> Any:
        """Custom all value if set, else every concrete option value."""
        all_value = getattr(variable, "all_value", None)
        if all_value:
            return all_value
        return [option.value for option in variable.options if option.value != ALL_VARIABLE_VALUE]

    # =========================================================================
    # Formatting
    # =========================================================================

    def format_value(
        self,
        value: Any,
        format: Any = None,
        variable: VariableModel | None = None,
        text: Any = None,
    ) -> str:
        if value is None:
            return ""

        if is_adhoc(variable) and format != FormatRegistryID.QUERY_PARAM:
            return ""

        if not isinstance(value, (list, str, int, float)):
            value = str(value)

        if callable(format):
            return format(value, variable, self.format_value)

        if not format:
            # Multi-value selections default to a regex alternation
            format = FormatRegistryID.REGEX if isinstance(value, list) else FormatRegistryID.GLOB

        # Some formats carry arguments after ':' (date:iso)
        name, *args = str(format.value if isinstance(format, FormatRegistryID) else format).split(":")

        registry = get_registry()
        definition = registry.get_if_exists(name)
        if definition is None:
            logger.error("[RESOLVER] Variable format %s not found. Using glob format as fallback.", name)
            definition = registry.get(FormatRegistryID.GLOB.value)

        options = FormatOptions(value=value, args=args, text=text if text is not None else value)
        return definition.formatter(options, variable)

    # =========================================================================
    # Scoped lookups
    # =========================================================================

    def _get_field_accessor(self, field_path: str) -> Callable[[Any], Any]:
        accessor = self._field_accessor_cache.get(field_path)
        if accessor is None:
            accessor = self._field_accessor_cache[field_path] = compile_field_accessor(field_path)
        return accessor

    def _get_variable_value(self, name: str, field_path: str | None, scoped_vars: ScopedVars) -> Any:
        """Scoped value for `name`, MISSING when the scope has no binding."""
        if name not in scoped_vars or scoped_vars[name] is None:
            return MISSING
        value = _scoped_attr(scoped_vars[name], "value")
        if field_path:
            return self._get_field_accessor(field_path)(value)
        return value

    def _get_variable_text(self, name: str, value: Any, scoped_vars: ScopedVars) -> Any:
        if name not in scoped_vars or scoped_vars[name] is None:
            return MISSING
        scoped = scoped_vars[name]
        if _scoped_attr(scoped, "value") == value or not isinstance(value, str):
            return _scoped_attr(scoped, "text")
        return value

    # =========================================================================
    # Replace
    # =========================================================================

    def replace(self, target: str | None, scoped_vars: ScopedVars | None = None, format: Any = None) -> str:
        """Interpolate every variable reference in `target`."""
        if not target:
            return ""
        return VARIABLE_REGEX.sub(lambda match: self._replace_match(match, scoped_vars, format), target)

    def _replace_match(self, match: re.Match, scoped_vars: ScopedVars | None, format: Any) -> str:
        var1, var2, fmt2, var3, field_path, fmt3 = match.groups()
        name = var1 or var2 or var3
        variable = self._get_variable_at_index(name)
        fmt = fmt2 or fmt3 or format

        if scoped_vars:
            value = self._get_variable_value(name, field_path, scoped_vars)
            if value is not MISSING:
                text = self._get_variable_text(name, value, scoped_vars)
                return self.format_value(value, fmt, variable, None if text is MISSING else text)

        if variable is None:
            return match.group(0)

        if fmt == FormatRegistryID.QUERY_PARAM or is_adhoc(variable):
            value = self._get_value_for_url(variable)
            text = variable.id if is_adhoc(variable) else variable.current.text
            return self.format_value(value, fmt, variable, text)

        current_value = variable.current.value
        if isinstance(current_value, str):
            system_value = self._builtin_values.get(current_value)
            if system_value:
                return self.format_value(system_value, fmt, variable)

        value = current_value
        text = variable.current.text

        if self.is_all_value(value):
            value = self.get_all_value(variable)
            text = ALL_VARIABLE_TEXT
            # Custom all values are raw expressions, re-resolve instead of formatting
            if getattr(variable, "all_value", None) and fmt != FormatRegistryID.TEXT:
                return self.replace(value)

        if field_path:
            field_value = self._get_variable_value(name, field_path, {name: ScopedVar(value=value, text=text)})
            if field_value is not MISSING and field_value is not None:
                return self.format_value(field_value, fmt, variable, text)

        return self.format_value(value, fmt, variable, text)

    # =========================================================================
    # Ad hoc filters
    # =========================================================================

    def _get_adhoc_variables(self) -> list[AdHocVariableModel]:
        return [v for v in self.get_variables() if is_adhoc(v)]

    def get_adhoc_filters(self, datasource_name: str) -> list[AdHocVariableFilter]:
        """Filters of every ad hoc variable bound to the named data source."""
        if self._dependencies is None:
            return []
        settings = self._dependencies.get_data_source_settings(datasource_name)
        if settings is None:
            return []

        filters: list[AdHocVariableFilter] = []
        for variable in self._get_adhoc_variables():
            uid = variable.datasource.uid if variable.datasource else None
            if uid == settings.uid or (uid is None and settings.is_default):
                filters.extend(variable.filters)
            elif uid and uid.startswith("$"):
                if self.replace(uid) == datasource_name:
                    filters.extend(variable.filters)
        return filters
