"""Tests for syncing variable values with `var-<name>` URL parameters."""

import pytest
from builders import current, custom_variable, make_session, query_variable, time_range

from dashvars.dashboard import Dashboard
from dashvars.session import TemplatingSession
from dashvars.sync.location import LocationService, encode_query, parse_query
from dashvars.sync.url import UrlValueChange, ensure_string_values, find_template_var_changes


class TestFindChanges:
    def test_changed_and_added_parameters(self):
        changes = find_template_var_changes({"var-a": "2", "var-b": "x", "from": "now-1h"}, {"var-a": "1"})
        assert changes == {"var-a": UrlValueChange(value="2"), "var-b": UrlValueChange(value="x")}

    def test_removed_parameter(self):
        changes = find_template_var_changes({}, {"var-a": "1"})
        assert changes == {"var-a": UrlValueChange(value="", removed=True)}

    def test_removed_empty_list_is_ignored(self):
        assert find_template_var_changes({}, {"var-a": []}) is None

    def test_single_element_list_equals_scalar(self):
        assert find_template_var_changes({"var-a": ["x"]}, {"var-a": "x"}) is None

    def test_non_variable_parameters_are_ignored(self):
        assert find_template_var_changes({"orgId": "2"}, {"orgId": "1"}) is None


class TestQueryEncoding:
    def test_list_values_repeat_key(self):
        assert encode_query({"var-a": ["x", "y"], "var-b": "z"}) == "var-a=x&var-a=y&var-b=z"

    def test_parse_repeated_keys(self):
        assert parse_query("?var-a=x&var-a=y&var-b=") == {"var-a": ["x", "y"], "var-b": ""}

    def test_ensure_string_values(self):
        assert ensure_string_values([1, True]) == ["1", "true"]
        assert ensure_string_values(2.0) == "2"
        assert ensure_string_values(None) == ""


class TestValueToUrl:
    @pytest.mark.asyncio
    async def test_selection_updates_location(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions"), query_variable("host", "hosts.$region")],
            legacy_datasource,
        )
        await session.set_variable_value("region", "us")

        assert session.location.get_search_object() == {"var-region": "us", "var-host": "us-1"}
        assert session.dashboard.refresh_count == 1
        assert session.dashboard.value_updated_count == 1

    @pytest.mark.asyncio
    async def test_other_parameters_are_kept(self):
        session = await make_session([custom_variable("env", "a,b")], query={"orgId": "1"})
        await session.set_variable_value("env", "b")
        assert session.location.get_search_object() == {"orgId": "1", "var-env": "b"}

    @pytest.mark.asyncio
    async def test_storage_limit_is_notified(self):
        session = TemplatingSession(location=LocationService(max_length=20), time_range=time_range())
        await session.init(Dashboard(uid="d"), [custom_variable("env", "a,a-rather-long-value")])

        await session.set_variable_value("env", "a-rather-long-value")

        assert session.replace("$env") == "a-rather-long-value"
        assert session.location.get_search_object() == {}
        text = session.notifications.notifications[-1].text
        assert text.startswith("Could not update URL: Storage limit exceeded:")


class TestUrlToValue:
    @pytest.mark.asyncio
    async def test_url_value_wins_on_load(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions"), query_variable("host", "hosts.$region")],
            legacy_datasource,
            query={"var-region": "us"},
        )
        assert session.replace("$region/$host") == "us/us-1"

    @pytest.mark.asyncio
    async def test_unknown_url_value_is_applied(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions")], legacy_datasource, query={"var-region": "ap"}
        )
        region = session.get_variable("region")
        assert region.current.value == "ap"
        assert region.current.text == "ap"

    @pytest.mark.asyncio
    async def test_multi_value_from_url(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions", multi=True)],
            legacy_datasource,
            query={"var-region": ["eu", "us"]},
        )
        assert session.get_variable("region").current.value == ["eu", "us"]
        assert session.replace("${region:csv}") == "eu,us"

    @pytest.mark.asyncio
    async def test_update_url_cascades(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions"), query_variable("host", "hosts.$region")],
            legacy_datasource,
        )

        changed = await session.update_url({"var-region": "us"})

        assert changed is True
        assert session.replace("$region/$host") == "us/us-1"
        assert session.dashboard.refresh_count == 1

    @pytest.mark.asyncio
    async def test_update_url_with_same_value(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions")], legacy_datasource)
        assert await session.update_url({"var-region": "eu"}) is False
        assert session.dashboard.refresh_count == 0

    @pytest.mark.asyncio
    async def test_removed_parameter_reverts_to_saved_value(self, legacy_datasource):
        session = await make_session(
            [query_variable("region", "regions", current=current("us"))],
            legacy_datasource,
            query={"var-region": "eu"},
        )
        assert session.replace("$region") == "eu"

        await session.update_url({})

        assert session.replace("$region") == "us"
