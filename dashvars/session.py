"""Templating session - the variables of one open dashboard.

A session owns the store, the resolver, the data source registry and the
URL location. Sessions are independent; tests typically create one per case.

Usage:
    session = TemplatingSession(datasources=registry)
    await session.init(Dashboard(uid="abc", title="Ops"), templating_list, query={"var-env": "prod"})
    session.replace("up{env=\"$env\"}")
    await session.update_time_range(new_range)
    session.teardown()
"""

import logging
import re
import sqlite3
from typing import Any

from core import (
    AdHocVariableFilter,
    SystemValue,
    TimeRange,
    UrlQueryValue,
    VariableIdentifier,
    VariableModel,
    VariableOption,
    VariableType,
    default_time_range,
    is_multi,
    to_variable_identifier,
)
from dashvars.dashboard import Dashboard
from dashvars.database import get_db, init_db
from dashvars.database.variables import load_variables, save_variables
from dashvars.errors import VariableNameError, VariableNotFoundError
from dashvars.notifications import Notification, NotificationCenter, create_variable_error_notification
from dashvars.providers.query_runners import QueryRunners
from dashvars.providers.registry import DataSourceRegistry
from dashvars.serialization import variable_from_dict
from dashvars.state import actions
from dashvars.state.reducers import TemplatingState, templating_reducer
from dashvars.state.shared_reducer import (
    add_variable,
    change_variable_name_succeeded,
    change_variable_order,
    change_variable_prop,
    change_variable_type,
    duplicate_variable,
    remove_variable,
    to_variable_payload,
)
from dashvars.state.store import Action, Store
from dashvars.sync.location import LocationService, UrlQueryMap
from dashvars.sync.url import find_template_var_changes, template_var_changed
from dashvars.variables import variable_adapters
from dashvars.variables.system import DASHBOARD_VARIABLE_NAME, ORG_VARIABLE_NAME, system_variable
from template_resolver import ResolverDependencies, TemplateResolver

logger = logging.getLogger(__name__)

_VALID_NAME = re.compile(r"^\w+$")


class TemplatingSession:
    """Variables, resolver and URL state of one dashboard."""

    def __init__(
        self,
        dashboard: Dashboard | None = None,
        datasources: DataSourceRegistry | None = None,
        location: LocationService | None = None,
        time_range: TimeRange | None = None,
        db_path: str | None = None,
    ):
        self.dashboard = dashboard or Dashboard()
        self.datasources = datasources or DataSourceRegistry()
        self.location = location or LocationService()
        self.time_range = time_range or default_time_range()
        self.db_path = db_path

        self.store = Store(templating_reducer)
        self.notifications = NotificationCenter()
        self.query_runners = QueryRunners()
        self.resolver = TemplateResolver(
            ResolverDependencies(
                get_variables=self.get_variables,
                get_variable_with_name=self.get_variable_with_name,
                get_value_for_url=lambda variable: variable_adapters.get(variable.type).get_value_for_url(variable),
                get_data_source_settings=lambda name: self.datasources.get_instance_settings(name),
            )
        )
        self.resolver.update_time_range(self.time_range)
        self.datasources.initialize(self.resolver)

    # =========================================================================
    # State access
    # =========================================================================

    def dispatch(self, action: Action) -> Action:
        return self.store.dispatch(action)

    def get_state(self) -> TemplatingState:
        return self.store.get_state()

    def get_variables(self) -> list[VariableModel]:
        """Every variable, in display order."""
        return sorted(self.get_state().variables.values(), key=lambda v: v.index)

    def get_variable(self, id: str) -> VariableModel:
        """Raises VariableNotFoundError if there is no variable with this id."""
        variable = self.get_state().variables.get(id)
        if variable is None:
            raise VariableNotFoundError(id)
        return variable

    def get_variable_with_name(self, name: str) -> VariableModel | None:
        return next((v for v in self.get_state().variables.values() if v.name == name), None)

    def _require_variable(self, name: str) -> VariableModel:
        variable = self.get_variable_with_name(name)
        if variable is None:
            raise VariableNotFoundError(name)
        return variable

    def notify(self, notification: Notification) -> None:
        self.notifications.notify(notification)

    # =========================================================================
    # Interpolation
    # =========================================================================

    def replace(self, target: str | None, scoped_vars: dict | None = None, format: Any = None) -> str:
        return self.resolver.replace(target, scoped_vars, format)

    def get_variable_name(self, expression: str) -> str | None:
        return self.resolver.get_variable_name(expression)

    def variable_exists(self, expression: str) -> bool:
        return self.resolver.variable_exists(expression)

    def get_adhoc_filters(self, datasource_name: str) -> list[AdHocVariableFilter]:
        return self.resolver.get_adhoc_filters(datasource_name)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def add_system_variables(self) -> None:
        """Add `__dashboard` and `__org` for the current dashboard."""
        dashboard = self.dashboard
        built_ins = [
            system_variable(
                DASHBOARD_VARIABLE_NAME,
                SystemValue(name=dashboard.title, uid=dashboard.uid, display=dashboard.title),
            ),
            system_variable(
                ORG_VARIABLE_NAME,
                SystemValue(name=dashboard.org_name, id=dashboard.org_id, display=str(dashboard.org_id)),
            ),
        ]
        for model in built_ins:
            if model.id in self.get_state().variables:
                continue
            index = len(self.get_state().variables)
            self.dispatch(add_variable(to_variable_payload(model, {"global": False, "index": index, "model": model})))

    async def init(
        self,
        dashboard: Dashboard | None = None,
        templating_list: list[dict | VariableModel] | None = None,
        time_range: TimeRange | None = None,
        query: UrlQueryMap | None = None,
    ) -> None:
        """Load a dashboard's variables and refresh them.

        URL values in `query` win over refreshing. Failures are reported as
        notifications, never raised.
        """
        if dashboard is not None:
            self.dashboard = dashboard
        if templating_list is None:
            templating_list = list(self.dashboard.templating_list)
        else:
            self.dashboard.templating_list = [
                variable_from_dict(item) if isinstance(item, dict) else item
                for item in templating_list
                if not isinstance(item, dict) or variable_adapters.get_if_exists(item.get("type")) is not None
            ]
        if time_range is not None:
            self.time_range = time_range
        if query is not None:
            self.location.push(query)

        await actions.init_variables_transaction(self, self.dashboard.uid, templating_list)

    def teardown(self) -> None:
        """Drop the dashboard's variables and transaction."""
        actions.clean_up_variables(self)
        logger.debug("[SESSION] Torn down dashboard %s", self.dashboard.uid)

    async def update_time_range(self, time_range: TimeRange) -> None:
        await actions.on_time_range_updated(self, time_range)

    # =========================================================================
    # Values
    # =========================================================================

    async def set_variable_value(self, name: str, value: str | list[str], text: str | list[str] | None = None) -> None:
        """Select a value as a user would, emitting the change."""
        variable = self._require_variable(name)

        if text is None:
            texts_by_value: dict[Any, Any] = {}
            for option in variable.options:
                texts_by_value.setdefault(option.value, option.text)
            if isinstance(value, list):
                text = [texts_by_value.get(v, v) for v in value]
            else:
                text = texts_by_value.get(value, value)

        option = VariableOption(text=text, value=value, selected=True)
        if is_multi(variable):
            option = actions.align_current_with_multi(option, variable.multi)

        await variable_adapters.get(variable.type).set_value(self, variable, option, True)

    async def refresh_variable(self, name: str, search_filter: str | None = None) -> None:
        variable = self._require_variable(name)
        await actions.update_options(self, to_variable_identifier(variable), search_filter=search_filter)

    async def update_url(self, query: UrlQueryMap) -> bool:
        """Apply a location change made outside the session.

        Returns:
            True if a variable value changed.
        """
        old = self.location.get_search_object()
        self.location.push(query)
        changes = find_template_var_changes(query, old)
        if not changes:
            return False
        return await template_var_changed(self, changes)

    def get_url_value(self, name: str) -> UrlQueryValue:
        variable = self._require_variable(name)
        return variable_adapters.get(variable.type).get_value_for_url(variable)

    # =========================================================================
    # Persistence
    # =========================================================================

    def get_save_models(self, save_current_as_default: bool = False) -> list[dict]:
        """Save models of the dashboard's own variables, in order."""
        return [
            variable_adapters.get(variable.type).get_save_model(variable, save_current_as_default)
            for variable in self.get_variables()
            if variable.type != VariableType.SYSTEM and not variable.global_
        ]

    def save(self, save_current_as_default: bool = False) -> list[dict]:
        """Persist the templating list.

        Storage failures are notified; the save models are returned either way.
        """
        models = self.get_save_models(save_current_as_default)
        uid = self.dashboard.uid or ""
        try:
            with get_db(self.db_path) as conn:
                init_db(conn)
                save_variables(conn, uid, models)
        except sqlite3.Error as e:
            logger.error("[SESSION] Failed to save variables for dashboard %s: %s", uid, e)
            self.notify(create_variable_error_notification("Error saving variables:", e))
        return models

    async def load(self, dashboard: Dashboard, query: UrlQueryMap | None = None) -> list[dict]:
        """Init from the templating list stored for `dashboard.uid`."""
        templating_list: list[dict] = []
        try:
            with get_db(self.db_path) as conn:
                init_db(conn)
                templating_list = load_variables(conn, dashboard.uid or "")
        except sqlite3.Error as e:
            logger.error("[SESSION] Failed to load variables for dashboard %s: %s", dashboard.uid, e)
            self.notify(create_variable_error_notification("Error loading variables:", e))

        await self.init(dashboard, templating_list, query=query)
        return templating_list

    # =========================================================================
    # Editing
    # =========================================================================

    def validate_variable_name(self, name: str, current_id: str | None = None) -> None:
        """Raises VariableNameError if `name` cannot be used."""
        if name.startswith("__"):
            raise VariableNameError(name, "Template names cannot begin with '__', that's reserved for global variables")
        if not _VALID_NAME.match(name):
            raise VariableNameError(name, "Only word and digit characters are allowed in variable names")
        existing = self.get_variable_with_name(name)
        if existing is not None and existing.id != current_id:
            raise VariableNameError(name, "Variable with the same name already exists")

    async def add_variable(self, model: VariableModel | dict) -> VariableModel:
        """Add a variable at the end and fetch its options."""
        if isinstance(model, dict):
            model = variable_from_dict(model)
        self.validate_variable_name(model.name)

        model.id = model.name
        identifier = to_variable_identifier(model)
        index = len(self.get_state().variables)
        self.dispatch(add_variable(to_variable_payload(identifier, {"global": False, "index": index, "model": model})))
        await actions.update_options(self, identifier)
        return self.get_variable(identifier.id)

    def remove_variable(self, name: str) -> None:
        variable = self._require_variable(name)
        self.dispatch(remove_variable(to_variable_payload(variable, {"re_index": True})))

    def change_variable_prop(self, name: str, prop_name: str, prop_value: Any) -> None:
        variable = self._require_variable(name)
        self.dispatch(
            change_variable_prop(to_variable_payload(variable, {"prop_name": prop_name, "prop_value": prop_value}))
        )

    def change_variable_order(self, from_index: int, to_index: int) -> None:
        variables = self.get_variables()
        if not 0 <= from_index < len(variables):
            logger.warning("[SESSION] Ignoring move of variable at index %d, out of range", from_index)
            return
        self.dispatch(
            change_variable_order(
                to_variable_payload(variables[from_index], {"from_index": from_index, "to_index": to_index})
            )
        )

    def duplicate_variable(self, name: str) -> VariableModel:
        variable = self._require_variable(name)
        new_id = f"copy_of_{variable.name}"
        self.dispatch(duplicate_variable(to_variable_payload(variable, {"new_id": new_id})))
        return self.get_variable(new_id)

    def change_variable_type(self, name: str, new_type: VariableType) -> VariableModel:
        variable = self._require_variable(name)
        self.dispatch(change_variable_type(to_variable_payload(variable, {"new_type": new_type})))
        return self.get_variable(variable.id)

    def change_variable_name(self, name: str, new_name: str) -> VariableModel:
        variable = self._require_variable(name)
        self.validate_variable_name(new_name, current_id=variable.id)
        self.dispatch(change_variable_name_succeeded(to_variable_payload(variable, {"new_name": new_name})))
        return self.get_variable(variable.id)

    def is_dirty(self) -> bool:
        return self.get_state().transaction.is_dirty

    def identifier(self, name: str) -> VariableIdentifier:
        return to_variable_identifier(self._require_variable(name))
