"""Single serialized action channel for templating state.

Every mutation goes through Store.dispatch, which applies one action at a
time with a pure reducer. Async work (refreshing options, syncing the URL)
lives in plain coroutines that dispatch actions as they progress.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

INIT_ACTION_TYPE = "@@dashvars/INIT"


@dataclass(frozen=True)
class Action:
    """A state transition request.

    `meta` carries bookkeeping such as async request ids; `error` is set on
    rejected async actions.
    """

    type: str
    payload: Any = None
    meta: dict | None = None
    error: Any = None


class ActionCreator:
    """Callable that builds actions of one type.

    Usage:
        variable_state_fetching = create_action("templating/shared/variableStateFetching")
        store.dispatch(variable_state_fetching(payload))
        if variable_state_fetching.match(action): ...
    """

    def __init__(self, type: str):
        self.type = type

    def __call__(self, payload: Any = None, meta: dict | None = None, error: Any = None) -> Action:
        return Action(type=self.type, payload=payload, meta=meta, error=error)

    def match(self, action: Action) -> bool:
        return action.type == self.type

    def __repr__(self) -> str:
        return f"ActionCreator({self.type!r})"


def create_action(type: str) -> ActionCreator:
    return ActionCreator(type)


Reducer = Callable[[Any, Action], Any]
Listener = Callable[[Action], None]


class Store:
    """Holds state and applies actions through a reducer, one at a time."""

    def __init__(self, reducer: Reducer, initial_state: Any = None):
        self._reducer = reducer
        self._dispatching = False
        self._listeners: list[Listener] = []
        self._state = reducer(initial_state, Action(type=INIT_ACTION_TYPE))

    def get_state(self) -> Any:
        return self._state

    def dispatch(self, action: Action) -> Action:
        if self._dispatching:
            raise RuntimeError(f"Reducers may not dispatch actions (while reducing {action.type})")

        self._dispatching = True
        try:
            self._state = self._reducer(self._state, action)
        finally:
            self._dispatching = False

        for listener in list(self._listeners):
            listener(action)
        return action

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every dispatched action. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
