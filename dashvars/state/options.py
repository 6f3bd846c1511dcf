"""Options refresh request, tracked per variable in `option_requests`.

Every adapter's update_options runs inside refresh_variable_options, so each
refresh gets a request id. Adapters that await a data source read that id
before the call and drop their results if a newer refresh started meanwhile.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core import VariableIdentifier
from dashvars.adapters import variable_adapters
from dashvars.state.async_request import (
    ThunkApi,
    create_async_map_slice,
    create_async_thunk,
    unwrap_result,
    with_serialized_error,
)

if TYPE_CHECKING:
    from dashvars.session import TemplatingSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionsRefresh:
    identifier: VariableIdentifier
    search_filter: str | None = None


async def _refresh_options(arg: OptionsRefresh, api: ThunkApi) -> None:
    session: TemplatingSession = api.extra
    variable = session.get_variable(arg.identifier.id)
    adapter = variable_adapters.get(variable.type)
    await with_serialized_error(adapter.update_options(session, variable, arg.search_filter))


refresh_variable_options = create_async_thunk("templating/options/refresh", _refresh_options)

option_requests_reducer = create_async_map_slice(
    refresh_variable_options,
    lambda arg: arg.identifier.id,
)


async def run_options_refresh(
    session: "TemplatingSession",
    identifier: VariableIdentifier,
    search_filter: str | None = None,
) -> bool:
    """Refresh a variable's options.

    Returns False when a newer refresh of the same variable was issued while
    this one ran; its outcome is dropped. Raises AsyncRequestError when the
    current refresh failed.
    """
    action = await refresh_variable_options(
        session.store,
        OptionsRefresh(identifier=identifier, search_filter=search_filter),
        extra=session,
    )
    if action.meta["request_id"] != current_request_id(session, identifier.id):
        logger.debug("[OPTIONS] Dropping superseded refresh of %s", identifier.id)
        return False
    unwrap_result(action)
    return True


def current_request_id(session: "TemplatingSession", variable_id: str) -> str | None:
    """Id of the latest options refresh issued for a variable."""
    request = session.get_state().option_requests.get(variable_id)
    return request.request_id if request else None
