"""Tests for dashboard load, dependency ordering and time range refreshes."""

import pytest
from builders import (
    current,
    custom_variable,
    make_session,
    query_variable,
    time_range,
)

from core import LoadingState, VariableRefresh
from dashvars.dashboard import Dashboard
from dashvars.state.graph import DependencyGraph
from dashvars.state.transaction import (
    TransactionState,
    TransactionStatus,
    transaction_reducer,
    variables_complete_transaction,
    variables_init_transaction,
)

ON_TIME = VariableRefresh.ON_TIME_RANGE_CHANGED


class TestDependencyGraph:
    def test_layers_follow_dependencies(self):
        graph = DependencyGraph(
            [
                query_variable("c", "x.$b", index=0),
                query_variable("b", "x.$a", index=1),
                query_variable("a", "x", index=2),
            ]
        )
        assert [[v.name for v in layer] for layer in graph.layers()] == [["a"], ["b"], ["c"]]

    def test_independent_variables_share_a_layer(self):
        graph = DependencyGraph([query_variable("a", "x", index=0), query_variable("b", "y", index=1)])
        assert [[v.name for v in layer] for layer in graph.layers()] == [["a", "b"]]

    def test_cycle_ends_up_in_last_layer(self):
        graph = DependencyGraph(
            [
                query_variable("root", "x", index=0),
                query_variable("a", "$b", index=1),
                query_variable("b", "$a", index=2),
            ]
        )
        assert [[v.name for v in layer] for layer in graph.layers()] == [["root"], ["a", "b"]]

    def test_optimized_dependents_skip_two_variable_cycles(self):
        graph = DependencyGraph(
            [
                query_variable("a", "$b", index=0),
                query_variable("b", "$a", index=1),
                query_variable("c", "$a", index=2),
            ]
        )
        assert [v.name for v in graph.optimized_dependents("a")] == ["c"]

    def test_subset_layers(self):
        graph = DependencyGraph([query_variable("a", "x", index=0), query_variable("b", "$a", index=1)])
        assert [[v.name for v in layer] for layer in graph.layers(["b"])] == [["b"]]


class TestTransactionReducer:
    def test_completion_of_other_transaction_is_ignored(self):
        state = transaction_reducer(TransactionState(), variables_init_transaction({"uid": "new"}))
        state = transaction_reducer(state, variables_complete_transaction({"uid": "old"}))
        assert state.status == TransactionStatus.FETCHING

    @pytest.mark.asyncio
    async def test_edits_after_load_mark_dirty(self):
        session = await make_session([custom_variable("env", "a,b")])
        assert session.get_state().transaction.status == TransactionStatus.COMPLETED
        assert not session.is_dirty()

        session.change_variable_prop("env", "label", "Environment")
        assert session.is_dirty()

    @pytest.mark.asyncio
    async def test_value_changes_are_not_edits(self):
        session = await make_session([custom_variable("env", "a,b")])
        await session.set_variable_value("env", "b")
        assert not session.is_dirty()


class TestDashboardLoad:
    @pytest.mark.asyncio
    async def test_system_variables_come_first(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions")], legacy_datasource)
        assert [(v.name, v.index) for v in session.get_variables()] == [
            ("__dashboard", 0),
            ("__org", 1),
            ("region", 2),
        ]

    @pytest.mark.asyncio
    async def test_every_variable_completes(self, legacy_datasource):
        session = await make_session(
            [
                query_variable("region", "regions"),
                query_variable("static", "regions", refresh=VariableRefresh.NEVER),
                custom_variable("env", "a"),
            ],
            legacy_datasource,
        )
        assert all(v.state == LoadingState.DONE for v in session.get_variables())
        # Never-refreshing variables keep their saved options
        assert [call[0] for call in legacy_datasource.calls] == ["regions"]

    @pytest.mark.asyncio
    async def test_load_does_not_refresh_panels(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions")], legacy_datasource)
        assert session.dashboard.refresh_count == 0

    @pytest.mark.asyncio
    async def test_dict_models_and_unknown_types(self, legacy_datasource):
        session = await make_session(
            [
                {"type": "query", "name": "region", "query": "regions", "datasource": {"uid": "legacy"}, "refresh": 1},
                {"type": "panel-plugin", "name": "weird"},
                {"type": "custom", "name": "env", "query": "a,b", "current": {"text": "b", "value": "b"}},
            ],
            legacy_datasource,
        )
        assert session.get_variable_with_name("weird") is None
        assert session.replace("$region/$env") == "eu/b"

    @pytest.mark.asyncio
    async def test_duplicate_names_are_skipped(self):
        session = await make_session([custom_variable("env", "a"), custom_variable("env", "b")])
        assert session.replace("$env") == "a"

    @pytest.mark.asyncio
    async def test_reinit_replaces_variables(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions")], legacy_datasource)
        await session.init(Dashboard(uid="dash-2", title="Next"), [custom_variable("env", "a")])

        assert session.get_variable_with_name("region") is None
        assert session.get_state().transaction.uid == "dash-2"
        assert session.replace("$__dashboard") == "Next"

    @pytest.mark.asyncio
    async def test_teardown(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions")], legacy_datasource)
        session.teardown()

        assert session.get_variables() == []
        assert session.get_state().transaction.status == TransactionStatus.NOT_STARTED


class TestTimeRangeUpdate:
    @pytest.mark.asyncio
    async def test_refreshes_in_dependency_order(self, legacy_datasource):
        session = await make_session(
            [
                query_variable("host", "hosts.$region", refresh=ON_TIME),
                query_variable("region", "regions", refresh=ON_TIME),
                query_variable("static", "regions"),
            ],
            legacy_datasource,
        )
        legacy_datasource.calls.clear()

        await session.update_time_range(time_range(1, 2))

        queried = [call[0] for call in legacy_datasource.calls]
        assert queried[0] == "regions"
        # host also follows the re-validated region selection
        assert set(queried[1:]) == {"hosts.eu"}
        assert legacy_datasource.calls[0][1].range == time_range(1, 2)
        assert session.dashboard.refresh_count == 1
        assert session.replace("$__from") == str(time_range(1, 2).from_ms)

    @pytest.mark.asyncio
    async def test_changed_options_announce_value_update(self, legacy_datasource):
        session = await make_session([query_variable("region", "regions", refresh=ON_TIME)], legacy_datasource)

        await session.update_time_range(time_range(1, 2))
        assert session.dashboard.value_updated_count == 0

        legacy_datasource.values["regions"] = ["eu", "us", "ap"]
        await session.update_time_range(time_range(2, 3))
        assert session.dashboard.value_updated_count == 1

    @pytest.mark.asyncio
    async def test_failure_is_notified_and_skips_panel_refresh(self, legacy_datasource):
        session = await make_session(
            [
                query_variable("region", "regions", refresh=ON_TIME, current=current("eu")),
                query_variable("host", "hosts.$region", refresh=ON_TIME),
            ],
            legacy_datasource,
        )
        legacy_datasource.fail["hosts.eu"] = RuntimeError("timeout")

        await session.update_time_range(time_range(1, 2))

        assert session.get_variable("host").state == LoadingState.ERROR
        assert session.get_variable("region").state == LoadingState.DONE
        texts = [n.text for n in session.notifications.notifications]
        assert texts[-1] == "Template variable service failed timeout"
        assert session.dashboard.refresh_count == 0
