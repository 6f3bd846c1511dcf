"""Data source variables - pick one of the data sources of a plugin type."""

from typing import TYPE_CHECKING, Any

from core import (
    ALL_VARIABLE_TEXT,
    ALL_VARIABLE_VALUE,
    DataSourceVariableModel,
    UrlQueryValue,
    VariableOption,
    VariableType,
    to_variable_identifier,
)
from dashvars.adapters import VariableAdapter, register_adapter
from dashvars.providers.registry import DEFAULT_DATASOURCE, DataSourceInstanceSettings
from dashvars.serialization import strip_volatile
from dashvars.state.actions import (
    is_all_variable,
    set_option_as_current,
    set_option_from_url,
    validate_variable_selection_state,
)
from dashvars.state.shared_reducer import VariablesState, to_variable_payload, update_instance
from dashvars.state.store import Action, create_action
from dashvars.utilities.regex import VariableRegex, string_to_regex
from template_resolver import contains_variable

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

NO_DATASOURCES_TEXT = "No data sources found"

# data: {"sources": list[DataSourceInstanceSettings], "regex": VariableRegex | None}
create_data_source_options = create_action("templating/datasource/createDataSourceOptions")


def _is_valid(source: DataSourceInstanceSettings, regex: VariableRegex | None) -> bool:
    if regex is None:
        return True
    return regex.search(source.name) is not None


def _is_default(source: DataSourceInstanceSettings, regex: VariableRegex | None) -> bool:
    if not source.is_default:
        return False
    if regex is None:
        return True
    return regex.search(DEFAULT_DATASOURCE) is not None


def datasource_variable_reducer(state: VariablesState, action: Action) -> VariablesState:
    if not create_data_source_options.match(action):
        return state

    sources: list[DataSourceInstanceSettings] = action.payload.data["sources"]
    regex: VariableRegex | None = action.payload.data.get("regex")

    def mutate(variable: DataSourceVariableModel) -> None:
        options = []
        for source in sources:
            if source.type != variable.query:
                continue
            if _is_valid(source, regex):
                options.append(VariableOption(text=source.name, value=source.name))
            if _is_default(source, regex):
                options.append(VariableOption(text=DEFAULT_DATASOURCE, value=DEFAULT_DATASOURCE))

        if not options:
            options.append(VariableOption(text=NO_DATASOURCES_TEXT, value=""))
        if variable.include_all:
            options.insert(0, VariableOption(text=ALL_VARIABLE_TEXT, value=ALL_VARIABLE_VALUE))
        variable.options = options

    return update_instance(state, action.payload.id, mutate)


async def update_datasource_variable_options(
    session: "TemplatingSession",
    variable: DataSourceVariableModel,
    search_filter: str | None = None,
) -> None:
    identifier = to_variable_identifier(variable)
    sources = session.datasources.get_list()
    regex = None
    if variable.regex:
        regex = string_to_regex(session.resolver.replace(variable.regex, None, "regex"))

    session.dispatch(create_data_source_options(to_variable_payload(identifier, {"sources": sources, "regex": regex})))
    await validate_variable_selection_state(session, identifier)


async def _set_value(session: "TemplatingSession", variable, option: VariableOption, emit_changes: bool = False):
    await set_option_as_current(session, to_variable_identifier(variable), option, emit_changes)


async def _set_value_from_url(session: "TemplatingSession", variable, url_value: UrlQueryValue):
    await set_option_from_url(session, to_variable_identifier(variable), url_value)


def _get_save_model(variable: DataSourceVariableModel, save_current_as_default: bool = False) -> dict[str, Any]:
    model = strip_volatile(variable)
    model["options"] = []
    return model


def _get_value_for_url(variable: DataSourceVariableModel) -> Any:
    if is_all_variable(variable):
        return ALL_VARIABLE_TEXT
    return variable.current.value


@register_adapter(VariableType.DATASOURCE)
def create_datasource_variable_adapter() -> VariableAdapter:
    return VariableAdapter(
        id=VariableType.DATASOURCE,
        name="Data source",
        description="Enables you to dynamically switch the data source for multiple panels",
        model_class=DataSourceVariableModel,
        reducer=datasource_variable_reducer,
        depends_on=lambda variable, candidate: contains_variable(variable.regex, candidate.name),
        set_value=_set_value,
        set_value_from_url=_set_value_from_url,
        update_options=update_datasource_variable_options,
        get_save_model=_get_save_model,
        get_value_for_url=_get_value_for_url,
    )
