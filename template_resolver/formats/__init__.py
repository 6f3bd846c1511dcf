"""Interpolation formatters.

Each module in this package defines formatters using the @register_format
decorator:

- lists: glob, raw, pipe, csv, distributed, text
- escaping: regex, lucene, html, json, percentencode, singlequote,
  doublequote, sqlstring, queryparam
- dates: date

Import this module to register all formats with the registry.
"""

from template_resolver.registry import FormatRegistryID, get_registry

# Import all format modules to trigger registration (noqa: F401 for side-effect imports)
from template_resolver.formats import (  # noqa: F401
    dates,
    escaping,
    lists,
)

__all__ = ["FormatRegistryID", "get_registry"]
