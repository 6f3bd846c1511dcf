"""Regex strings as typed into variable editors.

A plain string matches the whole value (`^...$`); `/pattern/flags` is used
as-is with JavaScript-style flags. Named groups may be written `(?<name>...)`.
"""

import re
from dataclasses import dataclass

_DELIMITED = re.compile(r"^/(.*?)/([gimys]*)$", re.DOTALL)
_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


@dataclass(frozen=True)
class VariableRegex:
    """Compiled editor regex. `global_` mirrors the `g` flag."""

    pattern: re.Pattern
    global_: bool = False

    def find_all(self, text: str) -> list[re.Match]:
        """Every match for global regexes, otherwise at most the first."""
        if self.global_:
            return list(self.pattern.finditer(text))
        match = self.pattern.search(text)
        return [match] if match else []

    def search(self, text: str) -> re.Match | None:
        return self.pattern.search(text)


def string_to_regex(value: str) -> VariableRegex:
    """Compile an editor regex string.

    Raises:
        ValueError: If the string is not a valid regular expression.
    """
    if not value.startswith("/"):
        return VariableRegex(_compile("^" + value + "$", 0, value))

    match = _DELIMITED.match(value)
    if not match:
        raise ValueError(f"'{value}' is not a valid regular expression.")

    body, flag_chars = match.groups()
    flags = 0
    for char in flag_chars:
        flags |= _FLAG_MAP.get(char, 0)
    return VariableRegex(_compile(body, flags, value), global_="g" in flag_chars)


def _compile(body: str, flags: int, original: str) -> re.Pattern:
    try:
        return re.compile(_NAMED_GROUP.sub("(?P<", body), flags)
    except re.error as e:
        raise ValueError(f"'{original}' is not a valid regular expression: {e}") from e
