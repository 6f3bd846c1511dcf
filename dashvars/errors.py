"""Exception types raised by dashvars."""

from core import SerializedError


class DashvarsError(Exception):
    """Base class for all dashvars errors."""


class VariableNotFoundError(DashvarsError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Couldn't find variable with name or id: {key}")


class UnknownVariableTypeError(DashvarsError):
    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"There is no adapter for type: {type_id}")


class UnknownVariableSupportError(DashvarsError):
    """No query runner can execute queries for the data source."""

    def __init__(self, datasource_name: str | None = None):
        self.datasource_name = datasource_name
        super().__init__("Couldn't find a query runner that matches supplied arguments.")


class DataSourceNotFoundError(DashvarsError):
    def __init__(self, ref: str | None):
        self.ref = ref
        super().__init__(f"Data source {ref} was not found")


class StorageLimitError(DashvarsError):
    """Persisting state would exceed a storage size limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Storage limit exceeded: {size} > {limit}")


class AsyncRequestError(DashvarsError):
    """A rejected async request, carrying its serialized error."""

    def __init__(self, error: SerializedError):
        self.error = error
        super().__init__(error.message)


class VariableNameError(DashvarsError):
    """A variable name is reserved, malformed or already taken."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(reason)
