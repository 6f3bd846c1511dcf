"""Template variables API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from core import TimeRange, VariableModel
from dashvars.api.models import (
    InterpolateRequest,
    InterpolateResponse,
    NotificationResponse,
    RefreshRequest,
    SetValueRequest,
    TemplatingResponse,
    TimeRangeRequest,
    UrlUpdateRequest,
    UrlUpdateResponse,
    VariableOptionModel,
    VariableResponse,
    VariableTypeResponse,
)
from dashvars.errors import VariableNotFoundError
from dashvars.session import TemplatingSession
from dashvars.variables import get_variable_types

router = APIRouter()


def get_session(request: Request) -> TemplatingSession:
    return request.app.state.session


def _option(option) -> VariableOptionModel:
    return VariableOptionModel(text=option.text, value=option.value, selected=option.selected)


def _current(variable: VariableModel) -> VariableOptionModel:
    value = variable.current.value
    if not isinstance(value, (str, list)):
        # System values are objects; expose their display form
        value = str(value)
    return VariableOptionModel(text=variable.current.text, value=value, selected=variable.current.selected)


def _to_response(variable: VariableModel) -> VariableResponse:
    return VariableResponse(
        id=variable.id,
        name=variable.name,
        type=variable.type.value,
        label=variable.label,
        hide=int(variable.hide),
        index=variable.index,
        state=variable.state.value,
        error=variable.error.message if variable.error else None,
        current=_current(variable),
        options=[_option(o) for o in variable.options],
    )


def _get_variable(session: TemplatingSession, name: str) -> VariableModel:
    variable = session.get_variable_with_name(name)
    if variable is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Variable {name} not found")
    return variable


@router.get("/variables", response_model=list[VariableResponse])
def list_variables(session: TemplatingSession = Depends(get_session)):  # noqa: B008
    """List all variables in display order."""
    return [_to_response(v) for v in session.get_variables()]


@router.get("/variables/types", response_model=list[VariableTypeResponse])
def list_variable_types():
    """Variable kinds a user can create."""
    return get_variable_types()


@router.get("/variables/{name}", response_model=VariableResponse)
def get_variable(name: str, session: TemplatingSession = Depends(get_session)):  # noqa: B008
    return _to_response(_get_variable(session, name))


@router.put("/variables/{name}/current", response_model=VariableResponse)
async def set_current_value(
    name: str,
    body: SetValueRequest,
    session: TemplatingSession = Depends(get_session),  # noqa: B008
):
    """Select a value, refreshing dependent variables."""
    _get_variable(session, name)
    await session.set_variable_value(name, body.value, body.text)
    return _to_response(_get_variable(session, name))


@router.post("/variables/{name}/refresh", response_model=VariableResponse)
async def refresh_variable(
    name: str,
    body: RefreshRequest | None = None,
    session: TemplatingSession = Depends(get_session),  # noqa: B008
):
    """Re-fetch a variable's options. Failures are reported in `state`/`error`."""
    _get_variable(session, name)
    try:
        await session.refresh_variable(name, body.search_filter if body else None)
    except VariableNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _to_response(_get_variable(session, name))


@router.post("/interpolate", response_model=InterpolateResponse)
def interpolate(body: InterpolateRequest, session: TemplatingSession = Depends(get_session)):  # noqa: B008
    """Replace variable references in a target string."""
    scoped_vars = {name: scoped.model_dump() for name, scoped in body.scoped_vars.items()}
    return InterpolateResponse(result=session.replace(body.target, scoped_vars, body.format))


@router.post("/time-range", response_model=list[VariableResponse])
async def update_time_range(body: TimeRangeRequest, session: TemplatingSession = Depends(get_session)):  # noqa: B008
    """Apply a new time range and refresh the variables that follow it."""
    if body.to < body.from_:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Time range ends before it starts")
    time_range = TimeRange(from_=body.from_, to=body.to, raw_from=body.raw_from, raw_to=body.raw_to)
    await session.update_time_range(time_range)
    return [_to_response(v) for v in session.get_variables()]


@router.get("/templating", response_model=TemplatingResponse)
def get_templating(
    save_current_as_default: bool = False,
    session: TemplatingSession = Depends(get_session),  # noqa: B008
):
    """Save models, as stored in the dashboard's templating section."""
    return TemplatingResponse(variables=session.get_save_models(save_current_as_default))


@router.post("/url", response_model=UrlUpdateResponse)
async def update_url(body: UrlUpdateRequest, session: TemplatingSession = Depends(get_session)):  # noqa: B008
    """Apply a changed URL query to the variables."""
    changed = await session.update_url(body.query)
    return UrlUpdateResponse(changed=changed, query=session.location.get_search_object())


@router.get("/notifications", response_model=list[NotificationResponse])
def list_notifications(session: TemplatingSession = Depends(get_session)):  # noqa: B008
    return [
        NotificationResponse(title=n.title, text=n.text, severity=n.severity, variable_id=n.variable_id)
        for n in session.notifications.notifications
    ]
