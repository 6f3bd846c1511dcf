"""Variable reference syntax.

One regex matches the three reference forms, each with an optional format:

    $var1
    [[var2]]  or [[var2:fmt2]]
    ${var3}   or ${var3:fmt3}  or ${var3.field.path:fmt3}

Groups, in order: var1, var2, fmt2, var3, field_path, fmt3. Exactly one of the
name groups is set per match, and callers take the first non-empty one.
"""

import json
import re
from typing import Any

VARIABLE_REGEX = re.compile(
    r"\$(\w+)|\[\[(.+?)(?::(\w+))?\]\]|\$\{(\w+)(?:\.([^:^\}]+))?(?::([^\}]+))?\}",
    re.ASCII | re.DOTALL,
)

SEARCH_FILTER_VARIABLE = "__searchFilter"


def match_variable_name(match: re.Match) -> str | None:
    """Name of the variable referenced by a VARIABLE_REGEX match."""
    var1, var2, _fmt2, var3, _field_path, _fmt3 = match.groups()
    return var1 or var2 or var3


def get_variable_name(expression: str) -> str | None:
    """Name referenced by the first variable reference in `expression`."""
    if not expression or not isinstance(expression, str):
        return None
    match = VARIABLE_REGEX.search(expression)
    if not match:
        return None
    return next((group for group in match.groups() if group is not None), None)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def contains_variable(*args: Any) -> bool:
    """True if any of the leading arguments references the variable named last.

    Usage:
        contains_variable(variable.query, variable.regex, "region")

    A purely textual test: every reference in the joined strings is matched
    and its capture groups compared against the name.
    """
    if len(args) < 2:
        return False
    variable_name = args[-1]
    text = " ".join(_stringify(part) for part in args[:-1])

    for match in VARIABLE_REGEX.finditer(text):
        # Re-match the reference on its own so groups line up with the name slots
        sub = VARIABLE_REGEX.match(match.group(0))
        if sub is not None and variable_name in (sub.group(0), *sub.groups()):
            return True
    return False


def contains_search_filter(query: Any) -> bool:
    return isinstance(query, str) and SEARCH_FILTER_VARIABLE in query


def get_search_filter_scoped_var(
    query: Any,
    wildcard_char: str,
    search_filter: str | None = None,
) -> dict[str, dict[str, str]]:
    """Scoped var binding `__searchFilter` to the typed filter plus a wildcard.

    Empty when the query does not reference `$__searchFilter`.
    """
    if not contains_search_filter(query):
        return {}
    value = f"{search_filter}{wildcard_char}" if search_filter else wildcard_char
    return {SEARCH_FILTER_VARIABLE: {"value": value, "text": ""}}
