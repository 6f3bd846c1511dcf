"""Pending/fulfilled/rejected request state with stale-response rejection.

An AsyncThunk runs a payload coroutine and brackets it with three actions that
share one request id. request_state_reducer applies a fulfillment or rejection
only when its request id is still the latest one recorded for the entity, so
results of superseded requests are dropped no matter when they arrive.

Usage:
    fetch_options = create_async_thunk("templating/fetchOptions", load_options)
    reducer = create_async_map_slice(fetch_options, lambda arg: arg.variable_id)
    action = await fetch_options(store, arg)
    result = unwrap_result(action)
"""

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

import httpx

from core import SerializedError
from dashvars.errors import AsyncRequestError
from dashvars.state.store import Action, ActionCreator, Store, create_action

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AsyncRequestState(Generic[T]):
    result: T | None = None
    loading: bool = False
    error: SerializedError | None = None
    dispatched: bool = False
    request_id: str | None = None


initial_async_request_state: AsyncRequestState = AsyncRequestState()


@dataclass(frozen=True)
class ThunkApi:
    """Handed to payload creators alongside their argument."""

    store: Store
    request_id: str
    extra: Any = None


PayloadCreator = Callable[[Any, ThunkApi], Awaitable[Any]]


# =============================================================================
# ERROR SERIALIZATION
# =============================================================================


def message_from_error(error: Any) -> str:
    """Human readable message for anything a collaborator may raise."""
    if isinstance(error, AsyncRequestError):
        return error.error.message
    if isinstance(error, SerializedError):
        return error.message
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        if response.text:
            return f"{response.status_code}: {response.text}"
        return f"{response.status_code}: {response.reason_phrase}"
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    return str(error)


def serialize_error(error: Any) -> SerializedError:
    if isinstance(error, SerializedError):
        return error
    if isinstance(error, AsyncRequestError):
        return error.error

    code = None
    if isinstance(error, httpx.HTTPStatusError):
        code = error.response.status_code
    else:
        candidate = getattr(error, "code", None)
        if isinstance(candidate, (int, str)):
            code = candidate

    return SerializedError(message=message_from_error(error), code=code, name=type(error).__name__)


async def with_serialized_error(awaitable: Awaitable[T]) -> T:
    """Await `awaitable`, re-raising failures as AsyncRequestError."""
    try:
        return await awaitable
    except AsyncRequestError:
        raise
    except Exception as e:
        raise AsyncRequestError(serialize_error(e)) from e


def unwrap_result(action: Action) -> Any:
    """Payload of a fulfilled action; raises AsyncRequestError for a rejected one."""
    if action.error is not None:
        raise AsyncRequestError(action.error)
    return action.payload


# =============================================================================
# THUNKS
# =============================================================================


class AsyncThunk:
    """Async action family: pending, fulfilled and rejected."""

    def __init__(self, type_prefix: str, payload_creator: PayloadCreator):
        self.type_prefix = type_prefix
        self.pending: ActionCreator = create_action(f"{type_prefix}/pending")
        self.fulfilled: ActionCreator = create_action(f"{type_prefix}/fulfilled")
        self.rejected: ActionCreator = create_action(f"{type_prefix}/rejected")
        self._payload_creator = payload_creator

    def matches(self, action: Action) -> bool:
        return self.pending.match(action) or self.fulfilled.match(action) or self.rejected.match(action)

    async def __call__(self, store: Store, arg: Any = None, extra: Any = None) -> Action:
        """Run the request and return the final (fulfilled or rejected) action."""
        request_id = uuid.uuid4().hex
        store.dispatch(self.pending(meta={"arg": arg, "request_id": request_id, "request_status": "pending"}))

        try:
            payload = await self._payload_creator(arg, ThunkApi(store=store, request_id=request_id, extra=extra))
        except Exception as e:
            error = serialize_error(e)
            logger.debug("[ASYNC] %s rejected (%s): %s", self.type_prefix, request_id, error.message)
            return store.dispatch(
                self.rejected(
                    meta={"arg": arg, "request_id": request_id, "request_status": "rejected"},
                    error=error,
                )
            )

        return store.dispatch(
            self.fulfilled(payload, meta={"arg": arg, "request_id": request_id, "request_status": "fulfilled"})
        )


def create_async_thunk(type_prefix: str, payload_creator: PayloadCreator) -> AsyncThunk:
    return AsyncThunk(type_prefix, payload_creator)


# =============================================================================
# REDUCERS
# =============================================================================


def request_state_reducer(
    thunk: AsyncThunk,
    state: AsyncRequestState = initial_async_request_state,
    action: Action | None = None,
) -> AsyncRequestState:
    """Apply one of `thunk`'s actions to a request state.

    Pending keeps the previous result and error while loading. Fulfilled and
    rejected are applied only for the most recently issued request id.
    """
    if action is None:
        return state

    if thunk.pending.match(action):
        return AsyncRequestState(
            result=state.result,
            loading=True,
            error=state.error,
            dispatched=True,
            request_id=action.meta["request_id"],
        )

    if thunk.fulfilled.match(action):
        if state.request_id is None or state.request_id == action.meta["request_id"]:
            return replace(state, result=action.payload, loading=False, error=None)
        return state

    if thunk.rejected.match(action):
        if state.request_id == action.meta["request_id"]:
            return replace(state, loading=False, error=action.error)
        return state

    return state


def create_async_slice(thunk: AsyncThunk) -> Callable[[AsyncRequestState | None, Action], AsyncRequestState]:
    """Reducer for a single entity's request state."""

    def reducer(state: AsyncRequestState | None, action: Action) -> AsyncRequestState:
        if state is None:
            state = initial_async_request_state
        return request_state_reducer(thunk, state, action)

    return reducer


def create_async_map_slice(
    thunk: AsyncThunk,
    get_entity_id: Callable[[Any], str],
) -> Callable[[dict[str, AsyncRequestState] | None, Action], dict[str, AsyncRequestState]]:
    """Reducer for request states keyed by entity id.

    The entity id is computed from the thunk argument, so requests for
    different entities never touch each other's state.
    """

    def reducer(state: dict[str, AsyncRequestState] | None, action: Action) -> dict[str, AsyncRequestState]:
        if state is None:
            state = {}
        if not thunk.matches(action):
            return state

        entity_id = get_entity_id(action.meta["arg"])
        previous = state.get(entity_id, initial_async_request_state)
        updated = request_state_reducer(thunk, previous, action)
        if updated is previous:
            return state
        return {**state, entity_id: updated}

    return reducer
