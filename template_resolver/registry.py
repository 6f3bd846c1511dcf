"""Format registry and registration decorator.

This module provides the central registry for all interpolation formats.
Formats are registered using the @register_format decorator, which captures
metadata alongside the formatter function.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from core import VariableModel

logger = logging.getLogger(__name__)


class FormatRegistryID(str, Enum):
    """Names accepted after `:` in `${var:format}` and `[[var:format]]`."""

    LUCENE = "lucene"
    RAW = "raw"
    REGEX = "regex"
    PIPE = "pipe"
    DISTRIBUTED = "distributed"
    CSV = "csv"
    HTML = "html"
    JSON = "json"
    PERCENT_ENCODE = "percentencode"
    SINGLE_QUOTE = "singlequote"
    DOUBLE_QUOTE = "doublequote"
    SQL_STRING = "sqlstring"
    DATE = "date"
    GLOB = "glob"
    TEXT = "text"
    QUERY_PARAM = "queryparam"


@dataclass(frozen=True)
class FormatOptions:
    """Input to a formatter.

    `args` holds anything after the first `:` of the format, e.g. `date:iso`.
    """

    value: Any
    text: Any = None
    args: list[str] = field(default_factory=list)


# Type alias for formatter functions
Formatter = Callable[[FormatOptions, "VariableModel | None"], str]


@dataclass(frozen=True)
class FormatDefinition:
    """Complete definition of an interpolation format."""

    id: str
    name: str
    formatter: Formatter
    description: str = ""


class FormatRegistry:
    """Singleton registry for all interpolation formats.

    Formats are registered via the @register_format decorator.
    The registry provides lookup and introspection capabilities.
    """

    _instance: "FormatRegistry | None" = None
    _formats: dict[str, FormatDefinition]

    def __new__(cls) -> "FormatRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._formats = {}
        return cls._instance

    def register(
        self,
        id: str,
        name: str,
        formatter: Formatter,
        description: str = "",
    ) -> None:
        """Register a format definition."""
        if id in self._formats:
            logger.warning("[FORMATS] Format '%s' already registered, overwriting", id)
        self._formats[id] = FormatDefinition(
            id=id,
            name=name,
            formatter=formatter,
            description=description,
        )

    def get_if_exists(self, id: str) -> FormatDefinition | None:
        """Get a format definition by id."""
        return self._formats.get(id)

    def get(self, id: str) -> FormatDefinition:
        """Get a format definition by id, raising KeyError if unknown."""
        definition = self._formats.get(id)
        if definition is None:
            raise KeyError(f"Format '{id}' is not registered")
        return definition

    def all_formats(self) -> list[FormatDefinition]:
        """Get all registered formats."""
        return list(self._formats.values())

    def count(self) -> int:
        return len(self._formats)

    def clear(self) -> None:
        """Clear all registered formats (for testing)."""
        self._formats.clear()


def register_format(
    id: FormatRegistryID | str,
    name: str,
    description: str = "",
) -> Callable[[Formatter], Formatter]:
    """Decorator to register a formatter.

    Usage:
        @register_format(
            id=FormatRegistryID.PIPE,
            name="Pipe",
            description="Values are separated by | character",
        )
        def format_pipe(options: FormatOptions, variable: VariableModel | None) -> str:
            if isinstance(options.value, list):
                return "|".join(options.value)
            return options.value
    """
    key = id.value if isinstance(id, FormatRegistryID) else id

    def decorator(func: Formatter) -> Formatter:
        FormatRegistry().register(key, name, func, description)
        return func

    return decorator


def get_registry() -> FormatRegistry:
    """Get the singleton format registry."""
    return FormatRegistry()
