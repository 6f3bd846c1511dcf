"""Tests for the action store and async request tracking."""

import asyncio

import httpx
import pytest

from dashvars.errors import AsyncRequestError
from dashvars.state.async_request import (
    AsyncRequestState,
    create_async_map_slice,
    create_async_slice,
    create_async_thunk,
    serialize_error,
    unwrap_result,
    with_serialized_error,
)
from dashvars.state.store import Store, create_action


def _gated_thunk(gates: dict[str, asyncio.Event], fail: set[str] = frozenset()):
    async def load(arg, api):
        name = arg[1] if isinstance(arg, tuple) else arg
        await gates[name].wait()
        if name in fail:
            raise RuntimeError(f"{name} failed")
        return name

    return create_async_thunk("test/load", load)


class TestStore:
    def test_dispatch_applies_reducer(self):
        increment = create_action("test/increment")

        def reducer(state, action):
            state = state or 0
            return state + 1 if increment.match(action) else state

        store = Store(reducer)
        store.dispatch(increment())
        store.dispatch(increment())
        assert store.get_state() == 2

    def test_reducers_cannot_dispatch(self):
        nested = create_action("test/nested")
        holder = {}

        def reducer(state, action):
            if nested.match(action):
                holder["store"].dispatch(create_action("test/other")())
            return state

        store = Store(reducer)
        holder["store"] = store
        with pytest.raises(RuntimeError):
            store.dispatch(nested())

    def test_subscribe_and_unsubscribe(self):
        ping = create_action("test/ping")
        seen = []
        store = Store(lambda state, action: state)
        unsubscribe = store.subscribe(lambda action: seen.append(action.type))
        store.dispatch(ping())
        unsubscribe()
        store.dispatch(ping())
        assert seen == ["test/ping"]


class TestSingleSlice:
    @pytest.mark.asyncio
    async def test_stale_fulfillment_is_dropped(self):
        gates = {"first": asyncio.Event(), "second": asyncio.Event()}
        thunk = _gated_thunk(gates)
        store = Store(create_async_slice(thunk))

        first = asyncio.create_task(thunk(store, "first"))
        await asyncio.sleep(0)
        second = asyncio.create_task(thunk(store, "second"))
        await asyncio.sleep(0)

        gates["second"].set()
        await second
        gates["first"].set()
        stale = await first

        state = store.get_state()
        assert state.result == "second"
        assert state.loading is False
        # The late action is still returned to its caller
        assert unwrap_result(stale) == "first"

    @pytest.mark.asyncio
    async def test_stale_rejection_is_dropped(self):
        gates = {"first": asyncio.Event(), "second": asyncio.Event()}
        thunk = _gated_thunk(gates, fail={"first"})
        store = Store(create_async_slice(thunk))

        first = asyncio.create_task(thunk(store, "first"))
        await asyncio.sleep(0)
        second = asyncio.create_task(thunk(store, "second"))
        await asyncio.sleep(0)

        gates["second"].set()
        await second
        gates["first"].set()
        rejected = await first

        assert store.get_state().error is None
        with pytest.raises(AsyncRequestError, match="first failed"):
            unwrap_result(rejected)

    @pytest.mark.asyncio
    async def test_pending_keeps_previous_result(self):
        gates = {"first": asyncio.Event(), "second": asyncio.Event()}
        thunk = _gated_thunk(gates)
        store = Store(create_async_slice(thunk))

        gates["first"].set()
        await thunk(store, "first")
        pending = asyncio.create_task(thunk(store, "second"))
        await asyncio.sleep(0)

        state = store.get_state()
        assert state.loading is True
        assert state.result == "first"

        gates["second"].set()
        await pending


class TestMapSlice:
    @pytest.mark.asyncio
    async def test_entities_are_tracked_separately(self):
        gates = {"a": asyncio.Event(), "b": asyncio.Event()}
        thunk = _gated_thunk(gates, fail={"b"})
        store = Store(create_async_map_slice(thunk, lambda arg: arg[0]))

        gates["a"].set()
        gates["b"].set()
        await thunk(store, ("x", "a"))
        await thunk(store, ("y", "b"))

        state = store.get_state()
        assert state["x"].result == "a"
        assert state["x"].error is None
        assert state["y"].error.message == "b failed"

    @pytest.mark.asyncio
    async def test_stale_fulfillment_is_dropped_per_entity(self):
        gates = {"first": asyncio.Event(), "second": asyncio.Event()}
        thunk = _gated_thunk(gates)
        store = Store(create_async_map_slice(thunk, lambda arg: arg[0]))

        first = asyncio.create_task(thunk(store, ("x", "first")))
        await asyncio.sleep(0)
        second = asyncio.create_task(thunk(store, ("x", "second")))
        await asyncio.sleep(0)

        gates["second"].set()
        await second
        gates["first"].set()
        await first

        assert store.get_state()["x"].result == "second"

    def test_unrelated_actions_keep_state(self):
        thunk = _gated_thunk({})
        reducer = create_async_map_slice(thunk, lambda arg: arg)
        state = {"x": AsyncRequestState(result=1)}
        assert reducer(state, create_action("other")()) is state


class TestErrorSerialization:
    def test_http_status_error_with_message(self):
        request = httpx.Request("POST", "http://ds/search")
        response = httpx.Response(500, json={"message": "boom"}, request=request)
        error = serialize_error(httpx.HTTPStatusError("failed", request=request, response=response))
        assert error.message == "boom"
        assert error.code == 500

    def test_http_status_error_with_text(self):
        request = httpx.Request("POST", "http://ds/search")
        response = httpx.Response(502, text="bad gateway", request=request)
        error = serialize_error(httpx.HTTPStatusError("failed", request=request, response=response))
        assert error.message == "502: bad gateway"

    def test_plain_exception(self):
        error = serialize_error(ValueError("nope"))
        assert error.message == "nope"
        assert error.name == "ValueError"

    @pytest.mark.asyncio
    async def test_with_serialized_error(self):
        async def fail():
            raise KeyError("missing")

        with pytest.raises(AsyncRequestError) as exc_info:
            await with_serialized_error(fail())
        assert exc_info.value.error.name == "KeyError"
