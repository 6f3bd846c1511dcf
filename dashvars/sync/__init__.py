"""URL synchronization - variable values <-> `var-<name>` parameters."""

from dashvars.sync.location import LocationService, UrlQueryMap, encode_query, parse_query
from dashvars.sync.url import (
    UrlValueChange,
    ensure_string_values,
    find_template_var_changes,
    get_query_with_variables,
    get_url_value_for_comparison,
    is_variable_url_value_different_from_current,
    template_var_changed,
)

__all__ = [
    "LocationService",
    "UrlQueryMap",
    "UrlValueChange",
    "encode_query",
    "ensure_string_values",
    "find_template_var_changes",
    "get_query_with_variables",
    "get_url_value_for_comparison",
    "is_variable_url_value_different_from_current",
    "parse_query",
    "template_var_changed",
]
