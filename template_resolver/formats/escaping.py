"""Formats that escape or quote values for a target query language."""

import html
import json
import re
from urllib.parse import quote

from core import VariableModel
from template_resolver.registry import (
    FormatOptions,
    FormatRegistryID,
    register_format,
)

_REGEX_SPECIAL = re.compile(r"[\\^$*+?.()|\[\]{}/]")
_LUCENE_SPECIAL = re.compile(r'([!*+\-=<>\s&|()\[\]{}^~?:\\/"])')


def regex_escape(value) -> str:
    """Backslash-escape regex metacharacters, e.g. 'a|b' -> 'a\\|b'."""
    return _REGEX_SPECIAL.sub(lambda m: "\\" + m.group(0), str(value))


def lucene_escape(value) -> str:
    return _LUCENE_SPECIAL.sub(r"\\\1", str(value))


def encode_uri_component_strict(value) -> str:
    """Percent-encode everything except unreserved characters."""
    return quote(str(value), safe="-_.~")


def format_query_parameter(name: str, value) -> str:
    return f"var-{name}={encode_uri_component_strict(value)}"


@register_format(
    id=FormatRegistryID.REGEX,
    name="Regex",
    description="Values are regex escaped and multi-valued variables generate a (<value>|<value>) expression",
)
def format_regex(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if not isinstance(value, list):
        return regex_escape(value)
    escaped = [regex_escape(v) for v in value]
    # A single selection is a plain value, not an alternation
    if len(escaped) == 1:
        return escaped[0]
    return "(" + "|".join(escaped) + ")"


@register_format(
    id=FormatRegistryID.LUCENE,
    name="Lucene",
    description="Values are lucene escaped and multi-valued variables generate an OR expression",
)
def format_lucene(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if not isinstance(value, list):
        return lucene_escape(value)
    if not value:
        return "__empty__"
    return "(" + " OR ".join(f'"{lucene_escape(v)}"' for v in value) + ")"


@register_format(
    id=FormatRegistryID.HTML,
    name="HTML",
    description="HTML escaping of values",
)
def format_html(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value)
    return html.escape(str(value))


@register_format(
    id=FormatRegistryID.JSON,
    name="JSON",
    description="JSON stringify value",
)
def format_json(options: FormatOptions, variable: VariableModel | None) -> str:
    return json.dumps(options.value, separators=(",", ":"), default=str)


@register_format(
    id=FormatRegistryID.PERCENT_ENCODE,
    name="Percent encode",
    description="Useful for URL escaping values",
)
def format_percent_encode(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if isinstance(value, list):
        return encode_uri_component_strict("{" + ",".join(str(v) for v in value) + "}")
    return encode_uri_component_strict(value)


@register_format(
    id=FormatRegistryID.SINGLE_QUOTE,
    name="Single quote",
    description="Single quoted values",
)
def format_single_quote(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    values = value if isinstance(value, list) else [value]
    return ",".join("'" + str(v).replace("'", "\\'") + "'" for v in values)


@register_format(
    id=FormatRegistryID.DOUBLE_QUOTE,
    name="Double quote",
    description="Double quoted values",
)
def format_double_quote(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    values = value if isinstance(value, list) else [value]
    return ",".join('"' + str(v).replace('"', '\\"') + '"' for v in values)


@register_format(
    id=FormatRegistryID.SQL_STRING,
    name="SQL string",
    description="SQL string quoting and commas for use in IN statements and other scenarios",
)
def format_sql_string(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    values = value if isinstance(value, list) else [value]
    return ",".join("'" + str(v).replace("'", "''") + "'" for v in values)


@register_format(
    id=FormatRegistryID.QUERY_PARAM,
    name="Query parameter",
    description="Format variables as URL parameters, example var-foo=A&var-foo=B",
)
def format_query_param(options: FormatOptions, variable: VariableModel | None) -> str:
    name = variable.name if variable is not None else ""
    value = options.value
    if isinstance(value, list):
        return "&".join(format_query_parameter(name, v) for v in value)
    return format_query_parameter(name, value)
