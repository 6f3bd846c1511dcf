"""Ad hoc filter variables - free-form key/operator/value filters.

Filters live in the `filters` list; there is no option list. In the URL each
filter is written as `key|operator|value`, one parameter value per filter.
Every filter operation emits the change, so the URL and the dashboard follow.
"""

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core import (
    AdHocVariableFilter,
    AdHocVariableModel,
    DataSourceRef,
    UrlQueryValue,
    VariableIdentifier,
    VariableOption,
    VariableType,
    is_adhoc,
    to_variable_identifier,
)
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.serialization import strip_volatile
from dashvars.state.actions import variable_updated
from dashvars.state.shared_reducer import (
    VariablesState,
    add_variable,
    change_variable_prop,
    to_variable_payload,
    update_instance,
)
from dashvars.state.store import Action, create_action

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)

FILTERS_VARIABLE_NAME = "Filters"
FILTER_DELIMITER = "|"

# data: AdHocVariableFilter
filter_added = create_action("templating/adhoc/filterAdded")
# data: int (index)
filter_removed = create_action("templating/adhoc/filterRemoved")
# data: {"index": int, "filter": AdHocVariableFilter}
filter_updated = create_action("templating/adhoc/filterUpdated")
# data: list[AdHocVariableFilter]
filters_restored = create_action("templating/adhoc/filtersRestored")


@dataclass
class AdHocTableOptions:
    """A cell clicked in a table panel, to be applied as a filter."""

    datasource: DataSourceRef
    key: str
    value: str
    operator: str = "="


def adhoc_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    payload = action.payload

    if filter_added.match(action):

        def add(variable: AdHocVariableModel) -> None:
            variable.filters.append(copy.copy(payload.data))

        return update_instance(state, payload.id, add)

    if filter_removed.match(action):

        def remove(variable: AdHocVariableModel) -> None:
            index = payload.data
            if 0 <= index < len(variable.filters):
                del variable.filters[index]

        return update_instance(state, payload.id, remove)

    if filter_updated.match(action):

        def change(variable: AdHocVariableModel) -> None:
            index = payload.data["index"]
            if 0 <= index < len(variable.filters):
                variable.filters[index] = copy.copy(payload.data["filter"])

        return update_instance(state, payload.id, change)

    if filters_restored.match(action):

        def restore(variable: AdHocVariableModel) -> None:
            variable.filters = [copy.copy(f) for f in payload.data]

        return update_instance(state, payload.id, restore)

    return state


# =============================================================================
# URL FORMAT
# =============================================================================


def to_url(filter: AdHocVariableFilter) -> str:
    return FILTER_DELIMITER.join([filter.key, filter.operator, filter.value])


def to_filter(value: str) -> AdHocVariableFilter:
    parts = value.split(FILTER_DELIMITER, 2)
    parts += [""] * (3 - len(parts))
    key, operator, filter_value = parts
    return AdHocVariableFilter(key=key, operator=operator, value=filter_value, condition="")


def filters_from_url(url_value: UrlQueryValue) -> list[AdHocVariableFilter]:
    values = url_value if isinstance(url_value, list) else [url_value]
    return [to_filter(str(value)) for value in values if value]


# =============================================================================
# OPERATIONS
# =============================================================================


async def add_filter(session: "TemplatingSession", id: str, filter: AdHocVariableFilter) -> None:
    variable = session.get_variable(id)
    session.dispatch(filter_added(to_variable_payload(variable, filter)))
    await variable_updated(session, to_variable_identifier(variable), True)


async def remove_filter(session: "TemplatingSession", id: str, index: int) -> None:
    variable = session.get_variable(id)
    session.dispatch(filter_removed(to_variable_payload(variable, index)))
    await variable_updated(session, to_variable_identifier(variable), True)


async def change_filter(session: "TemplatingSession", id: str, index: int, filter: AdHocVariableFilter) -> None:
    variable = session.get_variable(id)
    session.dispatch(filter_updated(to_variable_payload(variable, {"index": index, "filter": filter})))
    await variable_updated(session, to_variable_identifier(variable), True)


async def set_filters_from_url(session: "TemplatingSession", id: str, filters: list[AdHocVariableFilter]) -> None:
    variable = session.get_variable(id)
    session.dispatch(filters_restored(to_variable_payload(variable, filters)))
    await variable_updated(session, to_variable_identifier(variable), True)


def _find_variable_for_datasource(session: "TemplatingSession", datasource: DataSourceRef) -> AdHocVariableModel | None:
    for variable in session.get_variables():
        if is_adhoc(variable) and variable.datasource and variable.datasource.uid == datasource.uid:
            return variable
    return None


def _create_adhoc_variable(session: "TemplatingSession", datasource: DataSourceRef) -> AdHocVariableModel:
    existing_ids = set(session.get_state().variables)
    new_id = FILTERS_VARIABLE_NAME
    suffix = 1
    while new_id in existing_ids:
        new_id = f"{FILTERS_VARIABLE_NAME}_{suffix}"
        suffix += 1

    model = AdHocVariableModel(name=FILTERS_VARIABLE_NAME, id=new_id, datasource=copy.copy(datasource))
    identifier = VariableIdentifier(type=VariableType.ADHOC, id=new_id)
    index = len(session.get_state().variables)
    session.dispatch(add_variable(to_variable_payload(identifier, {"global": False, "index": index, "model": model})))
    logger.info("[ADHOC] Created %s variable for data source %s", FILTERS_VARIABLE_NAME, datasource.uid)
    return session.get_variable(new_id)


async def apply_filter_from_table(session: "TemplatingSession", options: AdHocTableOptions) -> None:
    """Filter on a table cell: add the filter, or switch the operator of an existing one."""
    variable = _find_variable_for_datasource(session, options.datasource)
    if variable is None:
        variable = _create_adhoc_variable(session, options.datasource)

    index = next(
        (i for i, f in enumerate(variable.filters) if f.key == options.key and f.value == options.value),
        -1,
    )
    if index == -1:
        filter = AdHocVariableFilter(key=options.key, operator=options.operator, value=options.value, condition="")
        await add_filter(session, variable.id, filter)
        return

    filter = copy.copy(variable.filters[index])
    filter.operator = options.operator
    await change_filter(session, variable.id, index, filter)


async def change_variable_datasource(session: "TemplatingSession", id: str, datasource: DataSourceRef | None) -> None:
    """Point an ad hoc variable at another data source.

    Raises:
        DataSourceNotFoundError: If the data source is not registered.
    """
    variable = session.get_variable(id)
    session.dispatch(
        change_variable_prop(to_variable_payload(variable, {"prop_name": "datasource", "prop_value": datasource}))
    )
    instance = await session.datasources.get(datasource)
    if not callable(getattr(instance, "get_tag_keys", None)):
        logger.info("[ADHOC] Data source %s does not support ad hoc filters", datasource.uid if datasource else None)


# =============================================================================
# ADAPTER
# =============================================================================


async def _noop_set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    return None


async def _noop_update_options(session: "TemplatingSession", variable, search_filter: str | None = None):
    return None


async def _set_value_from_url(session: "TemplatingSession", variable: AdHocVariableModel, url_value: UrlQueryValue):
    await set_filters_from_url(session, variable.id, filters_from_url(url_value))


def _get_save_model(variable: AdHocVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    return strip_volatile(variable)


def _get_value_for_url(variable: AdHocVariableModel) -> list[str]:
    return [to_url(f) for f in variable.filters]


@register_adapter(VariableType.ADHOC)
def create_adhoc_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.ADHOC,
        name="Ad hoc filters",
        description="Add key/value filters on the fly",
        model_class=AdHocVariableModel,
        reducer=adhoc_variable_reducer,
        depends_on=lambda variable, candidate: False,
        set_value=_noop_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=_noop_update_options,
        get_save_model=_get_save_model,
        get_value_for_url=_get_value_for_url,
    )
