"""Tests for query runner selection and result normalization."""

import pytest
from builders import FakeLegacyDataSource, FakeModernDataSource, query_variable, time_range

from core import DataFrame, Field, LoadingState, MetricFindValue, PanelData, VariableSupportType
from dashvars.errors import DashvarsError, UnknownVariableSupportError
from dashvars.providers.query_runners import (
    VARIABLE_DUMMY_REF_ID,
    DatasourceQueryRunner,
    QueryRunners,
    build_request,
    run_request,
    to_metric_find_values,
)


class TestRunnerSelection:
    @pytest.mark.parametrize(
        "datasource,expected",
        [
            (FakeLegacyDataSource(), VariableSupportType.LEGACY),
            (FakeModernDataSource(VariableSupportType.STANDARD), VariableSupportType.STANDARD),
            (FakeModernDataSource(VariableSupportType.CUSTOM), VariableSupportType.CUSTOM),
            (FakeModernDataSource(VariableSupportType.DATASOURCE), VariableSupportType.DATASOURCE),
        ],
    )
    def test_runner_for_support(self, datasource, expected):
        assert QueryRunners().get_runner_for_datasource(datasource).type == expected

    def test_no_support(self):
        class Opaque:
            name = "opaque"

        with pytest.raises(UnknownVariableSupportError):
            QueryRunners().get_runner_for_datasource(Opaque())


class TestTargets:
    def test_datasource_target_gets_dummy_ref_id(self):
        runner = DatasourceQueryRunner()
        datasource = FakeModernDataSource(VariableSupportType.DATASOURCE)

        assert runner.get_target(datasource, query_variable("v", "up")) == {
            "refId": VARIABLE_DUMMY_REF_ID,
            "query": "up",
        }

    def test_datasource_target_keeps_ref_id(self):
        runner = DatasourceQueryRunner()
        variable = query_variable("v")
        variable.query = {"refId": "B", "expr": "up"}
        assert runner.get_target(None, variable) == {"refId": "B", "expr": "up"}

    def test_build_request(self):
        request = build_request({"refId": "A"}, time_range(), {"x": {"value": 1}})
        assert request.targets == [{"refId": "A"}]
        assert request.range == time_range()
        assert request.request_id.startswith("variable-")


class TestRunRequest:
    @pytest.mark.asyncio
    async def test_response_is_wrapped(self):
        class Source:
            async def query(self, request):
                return [MetricFindValue(text="a", value="a")]

        data = await run_request(Source(), build_request("q", time_range()))
        assert data.state == LoadingState.DONE
        assert data.series == [MetricFindValue(text="a", value="a")]
        assert data.time_range == time_range()

    @pytest.mark.asyncio
    async def test_errors_become_error_state(self):
        class Source:
            async def query(self, request):
                raise ConnectionError("refused")

        data = await run_request(Source(), build_request("q", None))
        assert data.state == LoadingState.ERROR
        assert data.error.message == "refused"

    @pytest.mark.asyncio
    async def test_no_executor(self):
        data = await run_request(object(), build_request("q", None))
        assert data.state == LoadingState.ERROR

    @pytest.mark.asyncio
    async def test_panel_data_passes_through(self):
        panel_data = PanelData(series=["x"])

        async def executor(request):
            return panel_data

        assert await run_request(None, build_request("q", None), executor) is panel_data


class TestMetricFindValues:
    def test_plain_values(self):
        values = to_metric_find_values([{"text": "a"}, MetricFindValue(text="b", value="b")])
        assert [(v.text, v.value) for v in values] == [("a", None), ("b", "b")]

    def test_text_and_value_fields(self):
        frame = DataFrame(fields=[Field(name="Text", values=["A", "B"]), Field(name="value", values=["1", "2"])])
        values = to_metric_find_values([frame])
        assert [(v.text, v.value) for v in values] == [("A", "1"), ("B", "2")]

    def test_first_string_field(self):
        frame = DataFrame(fields=[Field(name="n", values=[1], type="number"), Field(name="host", values=["h1"])])
        assert [v.text for v in to_metric_find_values([frame])] == ["h1"]

    def test_no_string_field(self):
        frame = DataFrame(fields=[Field(name="n", values=[1], type="number")])
        with pytest.raises(DashvarsError):
            to_metric_find_values([frame])

    def test_empty(self):
        assert to_metric_find_values([]) == []
