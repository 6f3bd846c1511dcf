"""Data source registry - single source of truth for data source instances.

Data sources are registered with their instance settings and a factory. The
rest of the system looks them up by uid, by name, as `default`, or through a
`$variable` reference that is interpolated first.

Usage:
    registry = DataSourceRegistry()
    registry.register(
        DataSourceInstanceSettings(uid="P1", name="Prometheus", type="prometheus", is_default=True),
        factory=lambda settings: PrometheusDataSource(settings),
    )
    datasource = await registry.get("$ds")
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core import DataSourceRef, ScopedVars, VariableModel
from dashvars.errors import DataSourceNotFoundError

if TYPE_CHECKING:
    from template_resolver import TemplateResolver

logger = logging.getLogger(__name__)

DEFAULT_DATASOURCE = "default"


@dataclass
class DataSourceInstanceSettings:
    """Configuration of one data source instance. `type` is the plugin id."""

    uid: str
    name: str
    type: str
    is_default: bool = False
    url: str | None = None
    json_data: dict = field(default_factory=dict)


@dataclass
class DataSourceConfig:
    """A registered data source and its lazily created instance."""

    settings: DataSourceInstanceSettings
    factory: Callable[[DataSourceInstanceSettings], Any] | None = None

    _instance: Any = field(default=None, repr=False)

    def get_instance(self) -> Any:
        """Get or create the data source instance."""
        if self._instance is None:
            if self.factory is None:
                raise DataSourceNotFoundError(self.settings.name)
            self._instance = self.factory(self.settings)
        return self._instance

    def reset_instance(self) -> None:
        """Reset cached instance (for testing)."""
        self._instance = None


def _first_value(value: Any, variable: VariableModel | None, format_value: Callable) -> str:
    """Interpolation format picking the first value of a multi selection."""
    if isinstance(value, list):
        return str(value[0]) if value else ""
    return str(value)


class DataSourceRegistry:
    """Registered data sources for one session."""

    def __init__(self):
        self._configs: dict[str, DataSourceConfig] = {}
        self._resolver: TemplateResolver | None = None

    def initialize(self, resolver: "TemplateResolver") -> None:
        """Attach the resolver used to expand `$variable` references."""
        self._resolver = resolver
        logger.debug("[DATASOURCES] Registry initialized with resolver")

    def register(
        self,
        settings: DataSourceInstanceSettings,
        factory: Callable[[DataSourceInstanceSettings], Any] | None = None,
        *,
        instance: Any = None,
    ) -> None:
        """Register a data source.

        Args:
            settings: Instance settings (uid must be unique)
            factory: Creates the instance on first use
            instance: Ready-made instance, used instead of a factory
        """
        if settings.uid in self._configs:
            logger.warning("[DATASOURCES] Data source '%s' already registered, overwriting", settings.uid)

        config = DataSourceConfig(settings=settings, factory=factory)
        if instance is not None:
            config._instance = instance
        self._configs[settings.uid] = config
        logger.debug("[DATASOURCES] Registered data source: %s (%s)", settings.name, settings.type)

    def unregister(self, uid: str) -> bool:
        return self._configs.pop(uid, None) is not None

    def clear(self) -> None:
        """Clear all registrations (for testing)."""
        self._configs.clear()

    def reset_instances(self) -> None:
        """Reset all cached instances (for testing)."""
        for config in self._configs.values():
            config.reset_instance()

    def get_list(self, plugin_type: str | None = None) -> list[DataSourceInstanceSettings]:
        """Settings of every data source, sorted by name."""
        settings = [c.settings for c in self._configs.values()]
        if plugin_type is not None:
            settings = [s for s in settings if s.type == plugin_type]
        return sorted(settings, key=lambda s: s.name.lower())

    def _default(self) -> DataSourceInstanceSettings | None:
        return next((c.settings for c in self._configs.values() if c.settings.is_default), None)

    def _find(self, uid_or_name: str) -> DataSourceInstanceSettings | None:
        config = self._configs.get(uid_or_name)
        if config is not None:
            return config.settings
        return next((c.settings for c in self._configs.values() if c.settings.name == uid_or_name), None)

    def get_instance_settings(
        self,
        ref: str | DataSourceRef | None,
        scoped_vars: ScopedVars | None = None,
    ) -> DataSourceInstanceSettings | None:
        """Resolve a reference to instance settings, or None if unknown."""
        if ref is None:
            return self._default()

        key = ref.uid if isinstance(ref, DataSourceRef) else ref
        if not key or key == DEFAULT_DATASOURCE:
            return self._default()

        if "$" in key:
            if self._resolver is None:
                return None
            interpolated = self._resolver.replace(key, scoped_vars, _first_value)
            if interpolated == key:
                return None
            if interpolated == DEFAULT_DATASOURCE:
                return self._default()
            key = interpolated

        return self._find(key)

    async def get(self, ref: str | DataSourceRef | None = None, scoped_vars: ScopedVars | None = None) -> Any:
        """Get the data source instance for a reference.

        Raises:
            DataSourceNotFoundError: If the reference resolves to nothing.
        """
        settings = self.get_instance_settings(ref, scoped_vars)
        if settings is None:
            raise DataSourceNotFoundError(ref.uid if isinstance(ref, DataSourceRef) else ref)
        return self._configs[settings.uid].get_instance()
