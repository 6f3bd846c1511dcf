"""Pydantic models for API request/response validation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# VARIABLES
# =============================================================================


class VariableOptionModel(BaseModel):
    text: str | list[str] = ""
    value: str | list[str] = ""
    selected: bool = False


class VariableResponse(BaseModel):
    id: str
    name: str
    type: str
    label: str | None = None
    hide: int = 0
    index: int
    state: str
    error: str | None = None
    current: VariableOptionModel
    options: list[VariableOptionModel] = []


class VariableTypeResponse(BaseModel):
    label: str
    value: str


class SetValueRequest(BaseModel):
    value: str | list[str]
    text: str | list[str] | None = None


class RefreshRequest(BaseModel):
    search_filter: str | None = None


# =============================================================================
# INTERPOLATION
# =============================================================================


class ScopedVarModel(BaseModel):
    value: Any = None
    text: Any = None


class InterpolateRequest(BaseModel):
    target: str
    scoped_vars: dict[str, ScopedVarModel] = {}
    format: str | None = None


class InterpolateResponse(BaseModel):
    result: str


# =============================================================================
# TIME RANGE / URL
# =============================================================================


class TimeRangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime
    raw_from: str = ""
    raw_to: str = ""


class UrlUpdateRequest(BaseModel):
    query: dict[str, str | list[str]]


class UrlUpdateResponse(BaseModel):
    changed: bool
    query: dict[str, str | list[str]]


class NotificationResponse(BaseModel):
    title: str
    text: str
    severity: str
    variable_id: str | None = None


class TemplatingResponse(BaseModel):
    """The dashboard's `templating` section."""

    model_config = ConfigDict(populate_by_name=True)

    variables: list[dict[str, Any]] = Field(default_factory=list, alias="list")
