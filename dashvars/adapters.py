"""Variable adapter table - one behavior record per variable kind.

Each kind registers a factory with @register_adapter (see dashvars.variables).
Callers never branch on the kind themselves; they look up the adapter by the
variable's `type` and call through the record:

    adapter = variable_adapters.get(variable.type)
    await adapter.update_options(session, variable)
    adapter.get_value_for_url(variable)

Session-bound operations (set_value, set_value_from_url, update_options)
take the TemplatingSession as their first argument.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core import UrlQueryValue, VariableModel, VariableOption, VariableType
from dashvars.errors import UnknownVariableTypeError

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession
    from dashvars.state.store import Action

logger = logging.getLogger(__name__)

# Reducer over the id -> variable map
VariablesReducer = Callable[[dict[str, VariableModel], "Action"], dict[str, VariableModel]]


@dataclass(frozen=True)
class VariableAdapter:
    """Behavior of one variable kind."""

    id: VariableType
    name: str
    description: str
    model_class: type[VariableModel]
    reducer: VariablesReducer
    depends_on: Callable[[VariableModel, VariableModel], bool]
    set_value: Callable[["TemplatingSession", VariableModel, VariableOption, bool], Awaitable[None]]
    set_value_from_url: Callable[["TemplatingSession", VariableModel, UrlQueryValue], Awaitable[None]]
    update_options: Callable[["TemplatingSession", VariableModel, str | None], Awaitable[None]]
    get_save_model: Callable[[VariableModel, bool], dict[str, Any]]
    get_value_for_url: Callable[[VariableModel], Any]
    before_adding: Callable[[VariableModel], VariableModel] | None = None

    @property
    def initial_state(self) -> VariableModel:
        return self.model_class()


AdapterFactory = Callable[[], VariableAdapter]


class VariableAdapters:
    """Registry of adapters keyed by variable kind.

    Adapters are built lazily from their factories on first lookup.
    """

    def __init__(self):
        self._factories: dict[str, AdapterFactory] = {}
        self._adapters: dict[str, VariableAdapter] | None = None

    def register(self, type_id: VariableType | str, factory: AdapterFactory) -> None:
        key = _key(type_id)
        if key in self._factories:
            logger.warning("[ADAPTERS] Adapter '%s' already registered, overwriting", key)
        self._factories[key] = factory
        self._adapters = None

    def set_init(self, factories: dict[str, AdapterFactory]) -> None:
        """Replace every registration (for testing)."""
        self._factories = {_key(k): v for k, v in factories.items()}
        self._adapters = None

    def _built(self) -> dict[str, VariableAdapter]:
        if self._adapters is None:
            self._adapters = {key: factory() for key, factory in self._factories.items()}
        return self._adapters

    def get_if_exists(self, type_id: VariableType | str | None) -> VariableAdapter | None:
        if type_id is None:
            return None
        return self._built().get(_key(type_id))

    def get(self, type_id: VariableType | str) -> VariableAdapter:
        adapter = self.get_if_exists(type_id)
        if adapter is None:
            raise UnknownVariableTypeError(_key(type_id))
        return adapter

    def get_all(self) -> list[VariableAdapter]:
        return list(self._built().values())

    def registered_types(self) -> list[str]:
        return list(self._factories.keys())


def _key(type_id: VariableType | str) -> str:
    return type_id.value if isinstance(type_id, VariableType) else str(type_id)


variable_adapters = VariableAdapters()


def register_adapter(type_id: VariableType) -> Callable[[AdapterFactory], AdapterFactory]:
    """Decorator registering an adapter factory for a variable kind.

    Usage:
        @register_adapter(VariableType.CONSTANT)
        def create_constant_variable_adapter() -> VariableAdapter:
            return VariableAdapter(id=VariableType.CONSTANT, ...)
    """

    def decorator(factory: AdapterFactory) -> AdapterFactory:
        variable_adapters.register(type_id, factory)
        return factory

    return decorator


def get_variable_types() -> list[dict[str, str]]:
    """Kinds a user may create. System variables are built-in only."""
    return [
        {"label": adapter.name, "value": adapter.id.value}
        for adapter in variable_adapters.get_all()
        if adapter.id != VariableType.SYSTEM
    ]
