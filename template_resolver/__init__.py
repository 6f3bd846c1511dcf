"""Template interpolation engine.

Replaces variable references in query strings with formatted values.

Usage:
    from template_resolver import TemplateResolver
    from core import CustomVariableModel, VariableOption

    resolver = TemplateResolver()
    resolver.init([CustomVariableModel(name="env", current=VariableOption("prod", "prod"))])
    result = resolver.replace("up{env=\"$env\"}")

Formats are registered in template_resolver.formats and looked up by the
name after `:` in a reference (`${env:csv}`).
"""

from template_resolver.patterns import (
    SEARCH_FILTER_VARIABLE,
    VARIABLE_REGEX,
    contains_search_filter,
    contains_variable,
    get_search_filter_scoped_var,
    get_variable_name,
)
from template_resolver.registry import (
    FormatDefinition,
    FormatOptions,
    FormatRegistry,
    FormatRegistryID,
    get_registry,
    register_format,
)
from template_resolver.resolver import (
    MISSING,
    ResolverDependencies,
    TemplateResolver,
    compile_field_accessor,
)

__all__ = [
    # Main API
    "TemplateResolver",
    "ResolverDependencies",
    "MISSING",
    "compile_field_accessor",
    # Patterns
    "VARIABLE_REGEX",
    "SEARCH_FILTER_VARIABLE",
    "contains_search_filter",
    "contains_variable",
    "get_search_filter_scoped_var",
    "get_variable_name",
    # Registry
    "FormatDefinition",
    "FormatOptions",
    "FormatRegistry",
    "FormatRegistryID",
    "get_registry",
    "register_format",
]

# Import all format modules to register them
from template_resolver import formats  # noqa: F401
