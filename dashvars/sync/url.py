"""Mapping between variable values and `var-<name>` query parameters."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core import URL_VARIABLE_PREFIX, ConstantVariableModel, VariableModel
from dashvars.adapters import variable_adapters
from dashvars.sync.location import UrlQueryMap

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UrlValueChange:
    value: Any
    removed: bool = False


def ensure_string_values(value: Any) -> str | list[str]:
    """Normalize a URL value to a string or a list of strings."""
    if isinstance(value, list):
        return [_to_string(v) for v in value]
    if value is None:
        return ""
    if isinstance(value, (str, bool, int, float)):
        return _to_string(value)
    return ""


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def get_url_value_for_comparison(value: Any) -> Any:
    """Empty list -> None, single-element list -> its element."""
    if isinstance(value, list):
        if not value:
            return None
        if len(value) == 1:
            return value[0]
    return value


def find_template_var_changes(query: UrlQueryMap, old: UrlQueryMap) -> dict[str, UrlValueChange] | None:
    """Variable parameters that differ between two query maps.

    A parameter only present in `old` is reported as removed, unless its old
    value was an empty list. Returns None when nothing changed.
    """
    changes: dict[str, UrlValueChange] = {}

    for key, value in query.items():
        if not key.startswith(URL_VARIABLE_PREFIX):
            continue
        if get_url_value_for_comparison(value) != get_url_value_for_comparison(old.get(key)):
            changes[key] = UrlValueChange(value=value)

    for key, value in old.items():
        if not key.startswith(URL_VARIABLE_PREFIX):
            continue
        if isinstance(value, list) and not value:
            continue
        if key not in query:
            changes[key] = UrlValueChange(value="", removed=True)

    return changes or None


def get_query_with_variables(session: "TemplatingSession") -> UrlQueryMap:
    """Current location query with every variable parameter rewritten."""
    query = {
        key: value
        for key, value in session.location.get_search_object().items()
        if not key.startswith(URL_VARIABLE_PREFIX)
    }
    for variable in session.get_variables():
        if variable.skip_url_sync:
            continue
        adapter = variable_adapters.get(variable.type)
        query[URL_VARIABLE_PREFIX + variable.name] = adapter.get_value_for_url(variable)
    return query


def is_variable_url_value_different_from_current(variable: VariableModel, url_value: Any) -> bool:
    variable_value = variable_adapters.get(variable.type).get_value_for_url(variable)
    string_url_value = ensure_string_values(url_value)
    if isinstance(variable_value, list) and not isinstance(string_url_value, list):
        string_url_value = [string_url_value]
    return variable_value != string_url_value


def _saved_value(session: "TemplatingSession", name: str) -> Any:
    """Value stored for `name` in the loaded dashboard, for reverting removals."""
    for model in session.dashboard.templating_list:
        if model.name != name:
            continue
        if isinstance(model, ConstantVariableModel):
            # Constants keep their value in the query
            return model.query
        return model.current.value
    return None


async def template_var_changed(session: "TemplatingSession", changes: dict[str, UrlValueChange]) -> bool:
    """Apply changed URL parameters to their variables.

    Returns:
        True if at least one variable was updated (a dashboard refresh started).
    """
    updated: list[VariableModel] = []
    for variable in session.get_variables():
        key = URL_VARIABLE_PREFIX + variable.name
        change = changes.get(key)
        if change is None:
            continue
        if not is_variable_url_value_different_from_current(variable, change.value):
            continue

        value = change.value
        if change.removed:
            saved = _saved_value(session, variable.name)
            if saved is not None:
                value = saved

        await variable_adapters.get(variable.type).set_value_from_url(session, variable, value)
        updated.append(variable)

    if updated:
        logger.info("[URL] Variables changed in URL: %s", ", ".join(v.name for v in updated))
        session.dashboard.start_refresh()
    return bool(updated)
