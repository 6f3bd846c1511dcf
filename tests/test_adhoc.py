"""Tests for ad hoc filter variables."""

import pytest
from builders import adhoc_filter, adhoc_variable, make_session

from core import AdHocVariableFilter, DataSourceRef
from dashvars.errors import DataSourceNotFoundError
from dashvars.variables.adhoc import (
    FILTERS_VARIABLE_NAME,
    AdHocTableOptions,
    add_filter,
    apply_filter_from_table,
    change_filter,
    change_variable_datasource,
    remove_filter,
    to_filter,
    to_url,
)


class TestUrlFormat:
    def test_to_url(self):
        assert to_url(adhoc_filter("job", "!=", "api")) == "job|!=|api"

    def test_value_may_contain_delimiter(self):
        assert to_filter("a|=|b|c") == AdHocVariableFilter(key="a", operator="=", value="b|c")

    def test_missing_parts_are_empty(self):
        assert to_filter("a") == AdHocVariableFilter(key="a", operator="", value="")


class TestFilterOperations:
    @pytest.mark.asyncio
    async def test_add_filter_updates_location(self, legacy_datasource):
        session = await make_session([adhoc_variable("filters")], legacy_datasource)

        await add_filter(session, "filters", adhoc_filter("k", "=", "v"))

        assert session.get_variable("filters").filters == [adhoc_filter("k", "=", "v")]
        assert session.location.get_search_object() == {"var-filters": ["k|=|v"]}
        assert session.dashboard.refresh_count == 1

    @pytest.mark.asyncio
    async def test_change_and_remove(self, legacy_datasource):
        session = await make_session(
            [adhoc_variable("filters", filters=[adhoc_filter("a", "=", "1"), adhoc_filter("b", "=", "2")])],
            legacy_datasource,
        )

        await change_filter(session, "filters", 1, adhoc_filter("b", "=~", "2.*"))
        await remove_filter(session, "filters", 0)

        assert session.get_variable("filters").filters == [adhoc_filter("b", "=~", "2.*")]
        assert session.location.get_search_object() == {"var-filters": ["b|=~|2.*"]}

    @pytest.mark.asyncio
    async def test_out_of_range_index_is_ignored(self, legacy_datasource):
        session = await make_session([adhoc_variable("filters", filters=[adhoc_filter("a", "=", "1")])], legacy_datasource)
        await remove_filter(session, "filters", 5)
        assert len(session.get_variable("filters").filters) == 1

    @pytest.mark.asyncio
    async def test_filters_from_url(self, legacy_datasource):
        session = await make_session(
            [adhoc_variable("filters")],
            legacy_datasource,
            query={"var-filters": ["a|=|1", "b|!=|2"]},
        )
        assert session.get_variable("filters").filters == [adhoc_filter("a", "=", "1"), adhoc_filter("b", "!=", "2")]


class TestInterpolation:
    @pytest.mark.asyncio
    async def test_renders_only_as_query_param(self, legacy_datasource):
        session = await make_session([adhoc_variable("filters", filters=[adhoc_filter("k", "=", "v")])], legacy_datasource)

        assert session.replace("x$filters") == "x"
        assert session.replace("${filters:queryparam}") == "var-filters=k%7C%3D%7Cv"

    @pytest.mark.asyncio
    async def test_filters_for_datasource(self, legacy_datasource):
        session = await make_session([adhoc_variable("filters", filters=[adhoc_filter("k", "=", "v")])], legacy_datasource)

        assert session.get_adhoc_filters("legacy") == [adhoc_filter("k", "=", "v")]
        assert session.get_adhoc_filters("unknown") == []


class TestTableFilters:
    @pytest.mark.asyncio
    async def test_creates_filters_variable(self, legacy_datasource):
        session = await make_session([], legacy_datasource)

        await apply_filter_from_table(
            session, AdHocTableOptions(datasource=DataSourceRef(uid="legacy"), key="host", value="eu-1")
        )

        variable = session.get_variable(FILTERS_VARIABLE_NAME)
        assert variable.filters == [adhoc_filter("host", "=", "eu-1")]

    @pytest.mark.asyncio
    async def test_existing_filter_changes_operator(self, legacy_datasource):
        session = await make_session([], legacy_datasource)
        ref = DataSourceRef(uid="legacy")

        await apply_filter_from_table(session, AdHocTableOptions(datasource=ref, key="host", value="eu-1"))
        await apply_filter_from_table(
            session, AdHocTableOptions(datasource=ref, key="host", value="eu-1", operator="!=")
        )

        adhoc = [v for v in session.get_variables() if v.type.value == "adhoc"]
        assert len(adhoc) == 1
        assert adhoc[0].filters == [adhoc_filter("host", "!=", "eu-1")]


class TestChangeDatasource:
    @pytest.mark.asyncio
    async def test_unknown_datasource_raises(self, legacy_datasource):
        session = await make_session([adhoc_variable("filters")], legacy_datasource)

        with pytest.raises(DataSourceNotFoundError):
            await change_variable_datasource(session, "filters", DataSourceRef(uid="nope"))
        assert session.get_variable("filters").datasource == DataSourceRef(uid="nope")
