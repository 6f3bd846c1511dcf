"""Formats that join multi-value selections without escaping.

Scalars pass through unchanged (stringified); lists are joined with a
format-specific separator.
"""

from core import VariableModel
from template_resolver.registry import (
    FormatOptions,
    FormatRegistryID,
    register_format,
)


def _as_text(value) -> str:
    if value is None:
        return ""
    return str(value)


@register_format(
    id=FormatRegistryID.GLOB,
    name="Glob",
    description="Format multi-valued variables using glob syntax, example {value1,value2}",
)
def format_glob(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if isinstance(value, list):
        if len(value) > 1:
            return "{" + ",".join(_as_text(v) for v in value) + "}"
        return _as_text(value[0]) if value else ""
    return _as_text(value)


@register_format(
    id=FormatRegistryID.RAW,
    name="raw",
    description="Keep value as is",
)
def format_raw(options: FormatOptions, variable: VariableModel | None) -> str:
    if isinstance(options.value, list):
        return ",".join(_as_text(v) for v in options.value)
    return _as_text(options.value)


@register_format(
    id=FormatRegistryID.PIPE,
    name="Pipe",
    description="Values are separated by | character",
)
def format_pipe(options: FormatOptions, variable: VariableModel | None) -> str:
    if isinstance(options.value, list):
        return "|".join(_as_text(v) for v in options.value)
    return _as_text(options.value)


@register_format(
    id=FormatRegistryID.CSV,
    name="Csv",
    description="Comma-separated values",
)
def format_csv(options: FormatOptions, variable: VariableModel | None) -> str:
    if isinstance(options.value, list):
        return ",".join(_as_text(v) for v in options.value)
    return _as_text(options.value)


@register_format(
    id=FormatRegistryID.DISTRIBUTED,
    name="Distributed",
    description="Multiple values are formatted like variable=value, example servers=a,servers=b",
)
def format_distributed(options: FormatOptions, variable: VariableModel | None) -> str:
    value = options.value
    if not isinstance(value, list):
        return _as_text(value)
    name = variable.name if variable is not None else ""
    # First value stays bare, the rest repeat the variable name
    parts = [_as_text(v) if i == 0 else f"{name}={_as_text(v)}" for i, v in enumerate(value)]
    return ",".join(parts)


@register_format(
    id=FormatRegistryID.TEXT,
    name="Text",
    description="Format variables in their text representation. Example in multi-variable scenario A + B + C.",
)
def format_text(options: FormatOptions, variable: VariableModel | None) -> str:
    text = options.text
    if isinstance(text, list):
        return " + ".join(_as_text(t) for t in text)
    return _as_text(text)
