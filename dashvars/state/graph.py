"""Dependency graph between variables.

An edge B -> A exists when B's adapter reports that B depends on A, i.e. A's
name appears in B's query, regex or data source reference.
"""

import logging
from collections.abc import Callable, Iterable

from core import VariableModel
from dashvars.adapters import variable_adapters

logger = logging.getLogger(__name__)

DependsOn = Callable[[VariableModel, VariableModel], bool]


def _adapter_depends_on(variable: VariableModel, candidate: VariableModel) -> bool:
    adapter = variable_adapters.get_if_exists(variable.type)
    return adapter is not None and adapter.depends_on(variable, candidate)


class DependencyGraph:
    """Who depends on whom, by variable name."""

    def __init__(self, variables: Iterable[VariableModel], depends_on: DependsOn = _adapter_depends_on):
        self._variables: dict[str, VariableModel] = {}
        for variable in variables:
            self._variables.setdefault(variable.name, variable)

        self._dependencies: dict[str, set[str]] = {name: set() for name in self._variables}
        self._dependents: dict[str, set[str]] = {name: set() for name in self._variables}

        for name, variable in self._variables.items():
            for other_name, other in self._variables.items():
                if other_name != name and depends_on(variable, other):
                    self._dependencies[name].add(other_name)
                    self._dependents[other_name].add(name)

    def dependencies_of(self, name: str) -> set[str]:
        return set(self._dependencies.get(name, ()))

    def dependents_of(self, name: str) -> set[str]:
        return set(self._dependents.get(name, ()))

    def optimized_dependents(self, name: str) -> list[VariableModel]:
        """Direct dependents to refresh after `name` changed.

        A dependent that `name` itself depends on (a two-variable cycle) is
        left out so an update cannot bounce back and forth.
        """
        own_dependencies = self._dependencies.get(name, set())
        return [
            self._variables[dependent]
            for dependent in sorted(self._dependents.get(name, ()), key=self._order_key)
            if dependent not in own_dependencies
        ]

    def _order_key(self, name: str) -> tuple[int, str]:
        return self._variables[name].index, name

    def layers(self, names: Iterable[str] | None = None) -> list[list[VariableModel]]:
        """Variables grouped so each layer only depends on earlier layers.

        Only dependencies inside the selected subset are considered. Variables
        caught in a cycle are logged and put into one final layer.
        """
        selected = set(self._variables if names is None else (n for n in names if n in self._variables))
        remaining = {name: self._dependencies[name] & selected for name in selected}

        layers: list[list[VariableModel]] = []
        while remaining:
            ready = sorted((name for name, deps in remaining.items() if not deps), key=self._order_key)
            if not ready:
                cyclic = sorted(remaining, key=self._order_key)
                logger.warning("[GRAPH] Circular dependency between variables: %s", ", ".join(cyclic))
                layers.append([self._variables[name] for name in cyclic])
                break

            layers.append([self._variables[name] for name in ready])
            for name in ready:
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)

        return layers
