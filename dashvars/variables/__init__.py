"""Variable kinds.

Importing this package registers every kind's adapter with
`variable_adapters`. Each module holds one kind: its model-specific
actions, its reducer and its adapter factory.
"""

from dashvars.adapters import (
    VariableAdapter,
    VariableAdapters,
    get_variable_types,
    register_adapter,
    variable_adapters,
)

# Import all variable modules to register them
from dashvars.variables import (  # noqa: F401
    adhoc,
    constant,
    custom,
    datasource,
    interval,
    query,
    system,
    textbox,
)

__all__ = [
    "VariableAdapter",
    "VariableAdapters",
    "get_variable_types",
    "register_adapter",
    "variable_adapters",
]
