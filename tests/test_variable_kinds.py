"""Tests for custom, constant, text box, interval, data source and system variables."""

import pytest
from builders import (
    FakeLegacyDataSource,
    constant_variable,
    current,
    custom_variable,
    datasource_variable,
    interval_variable,
    make_session,
    query_variable,
    textbox_variable,
    time_range,
)

from core import ALL_VARIABLE_VALUE, LoadingState, VariableHide
from dashvars.dashboard import Dashboard
from dashvars.providers.registry import DataSourceInstanceSettings, DataSourceRegistry
from dashvars.session import TemplatingSession
from dashvars.sync.location import LocationService


class TestCustomVariable:
    def test_parse_options(self):
        from dashvars.variables.custom import parse_custom_options

        options = parse_custom_options("a, b\\,c, Text : val")
        assert [(o.text, o.value) for o in options] == [("a", "a"), ("b,c", "b,c"), ("Text", "val")]

    @pytest.mark.asyncio
    async def test_options_built_on_load(self):
        session = await make_session(
            [custom_variable("env", "dev,staging,prod", include_all=True, current=current("prod"))]
        )
        env = session.get_variable("env")
        assert [o.value for o in env.options] == [ALL_VARIABLE_VALUE, "dev", "staging", "prod"]
        assert env.current.value == "prod"
        assert env.state == LoadingState.DONE

    @pytest.mark.asyncio
    async def test_multi_selection_is_kept(self):
        session = await make_session(
            [custom_variable("env", "a,b,c", multi=True, current=current(["a", "c"]))]
        )
        assert session.get_variable("env").current.value == ["a", "c"]
        assert session.replace("$env") == "(a|c)"

    @pytest.mark.asyncio
    async def test_unknown_selection_falls_back_to_first(self):
        session = await make_session([custom_variable("env", "a,b", current=current("gone"))])
        assert session.get_variable("env").current.value == "a"

    @pytest.mark.asyncio
    async def test_save_model_keeps_options(self):
        session = await make_session([custom_variable("env", "a,b", include_all=True)])
        model = session.get_save_models()[0]
        assert model["includeAll"] is True
        assert [o["value"] for o in model["options"]] == [ALL_VARIABLE_VALUE, "a", "b"]


class TestConstantVariable:
    @pytest.mark.asyncio
    async def test_value_from_query(self):
        session = await make_session([constant_variable("prefix", " app.prod ")])
        prefix = session.get_variable("prefix")
        assert prefix.current.value == "app.prod"
        assert prefix.hide == VariableHide.HIDE_VARIABLE
        assert session.replace("$prefix.cpu") == "app.prod.cpu"
        assert session.get_url_value("prefix") == "app.prod"


class TestTextBoxVariable:
    @pytest.mark.asyncio
    async def test_value_from_query(self):
        session = await make_session([textbox_variable("search", "hello")])
        assert session.get_variable("search").current.value == "hello"
        assert session.get_variable("search").original_query == "hello"
        assert session.replace("$search") == "hello"

    @pytest.mark.asyncio
    async def test_url_value_is_not_saved_by_default(self):
        session = await make_session([textbox_variable("search", "hello")], query={"var-search": "world"})
        assert session.replace("$search") == "world"

        model = session.get_save_models()[0]
        assert model["query"] == "hello"
        assert model["current"]["value"] == "hello"

    @pytest.mark.asyncio
    async def test_save_current_as_default(self):
        session = await make_session([textbox_variable("search", "hello")], query={"var-search": "world"})

        model = session.get_save_models(save_current_as_default=True)[0]
        assert model["query"] == "world"
        assert model["current"]["value"] == "world"


class TestIntervalVariable:
    def test_parse_quoted_items(self):
        from dashvars.variables.interval import parse_interval_options

        assert [o.value for o in parse_interval_options("1m,'1d 12h',30d")] == ["1m", "1d 12h", "30d"]

    @pytest.mark.asyncio
    async def test_options(self):
        session = await make_session([interval_variable("iv", current=current("10m"))])
        iv = session.get_variable("iv")
        assert [o.value for o in iv.options] == ["1m", "10m", "1h"]
        assert session.replace("rate(x[$iv])") == "rate(x[10m])"

    @pytest.mark.asyncio
    async def test_auto_interval_follows_time_range(self):
        session = await make_session([interval_variable("iv", auto=True)], time_range_value=time_range(0, 6))
        iv = session.get_variable("iv")
        assert iv.options[0].text == "auto"
        assert iv.current.value == "$__auto_interval_iv"
        assert session.replace("$iv") == "10m"

        await session.update_time_range(time_range(0, 1))
        assert session.replace("$iv") == "2m"

    @pytest.mark.asyncio
    async def test_save_model_drops_options(self):
        session = await make_session([interval_variable("iv")])
        assert session.get_save_models()[0]["options"] == []


def _influx_session() -> TemplatingSession:
    registry = DataSourceRegistry()
    for uid, name, plugin_type, is_default in (
        ("p1", "Influx prod", "influx", True),
        ("d1", "Influx dev", "influx", False),
        ("pr", "Prom", "prometheus", False),
    ):
        registry.register(
            DataSourceInstanceSettings(uid=uid, name=name, type=plugin_type, is_default=is_default),
            instance=FakeLegacyDataSource(name=name, uid=uid),
        )
    return TemplatingSession(datasources=registry, location=LocationService(max_length=4096), time_range=time_range())


class TestDataSourceVariable:
    @pytest.mark.asyncio
    async def test_options_of_plugin_type(self):
        session = _influx_session()
        await session.init(Dashboard(uid="d"), [datasource_variable("ds", "influx")])

        ds = session.get_variable("ds")
        assert [o.value for o in ds.options] == ["Influx dev", "Influx prod", "default"]
        assert ds.current.value == "Influx dev"

    @pytest.mark.asyncio
    async def test_regex_filters_names(self):
        session = _influx_session()
        await session.init(Dashboard(uid="d"), [datasource_variable("ds", "influx", regex="/prod/")])
        assert [o.value for o in session.get_variable("ds").options] == ["Influx prod"]

    @pytest.mark.asyncio
    async def test_no_matching_sources(self):
        session = _influx_session()
        await session.init(Dashboard(uid="d"), [datasource_variable("ds", "loki")])

        ds = session.get_variable("ds")
        assert [(o.text, o.value) for o in ds.options] == [("No data sources found", "")]

    @pytest.mark.asyncio
    async def test_query_variable_follows_selected_datasource(self):
        session = _influx_session()
        dev = await session.datasources.get("d1")
        prod = await session.datasources.get("p1")
        dev.values["measurements"] = ["cpu"]
        prod.values["measurements"] = ["mem"]

        await session.init(
            Dashboard(uid="d"),
            [datasource_variable("ds", "influx"), query_variable("m", "measurements", datasource="$ds")],
        )
        assert session.get_variable("m").current.value == "cpu"

        await session.set_variable_value("ds", "Influx prod")
        assert session.get_variable("m").current.value == "mem"
        assert prod.calls[-1][0] == "measurements"


class TestSystemVariables:
    @pytest.mark.asyncio
    async def test_dashboard_and_org(self):
        session = await make_session([], dashboard=Dashboard(uid="abc", title="Ops", org_id=3))

        assert session.replace("$__dashboard") == "Ops"
        assert session.replace("${__dashboard.uid}") == "abc"
        assert session.replace("${__org.id}") == "3"
        assert [v.name for v in session.get_variables()] == ["__dashboard", "__org"]

    @pytest.mark.asyncio
    async def test_not_saved_and_not_in_url(self):
        session = await make_session([custom_variable("env", "a")], dashboard=Dashboard(uid="abc", title="Ops"))

        assert [m["name"] for m in session.get_save_models()] == ["env"]
        await session.set_variable_value("env", "a")
        assert session.location.get_search_object() == {"var-env": "a"}
