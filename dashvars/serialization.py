"""Conversion between variable models and dashboard JSON save models.

Save models use the dashboard's camelCase keys (`skipUrlSync`, `includeAll`,
`allValue`). Everything else keeps its attribute name.
"""

import dataclasses
import logging
from enum import Enum
from typing import Any

from core import (
    AdHocVariableFilter,
    DataSourceRef,
    LoadingState,
    SerializedError,
    SystemValue,
    VariableHide,
    VariableModel,
    VariableOption,
    VariableRefresh,
    VariableSort,
    VariableType,
)
from dashvars.adapters import variable_adapters

logger = logging.getLogger(__name__)

_TO_JSON_KEY = {
    "skip_url_sync": "skipUrlSync",
    "include_all": "includeAll",
    "all_value": "allValue",
    "original_query": "originalQuery",
    "global_": "global",
    "is_none": "isNone",
}
_FROM_JSON_KEY = {v: k for k, v in _TO_JSON_KEY.items()}

# Runtime-only fields never written to a save model
VOLATILE_FIELDS = ("index", "id", "state", "global_", "error")

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "type": VariableType,
    "hide": VariableHide,
    "refresh": VariableRefresh,
    "sort": VariableSort,
    "state": LoadingState,
}


def option_to_dict(option: VariableOption) -> dict[str, Any]:
    data = {"text": option.text, "value": option.value, "selected": option.selected}
    if option.is_none:
        data["isNone"] = True
    return data


def option_from_dict(data: Any) -> VariableOption:
    if isinstance(data, VariableOption):
        return data
    if not isinstance(data, dict):
        return VariableOption()
    return VariableOption(
        text=data.get("text", ""),
        value=data.get("value", ""),
        selected=bool(data.get("selected", False)),
        is_none=bool(data.get("isNone", False)),
    )


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, VariableOption):
        return option_to_dict(value)
    if isinstance(value, (DataSourceRef, AdHocVariableFilter, SystemValue, SerializedError)):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    return value


def variable_to_dict(variable: VariableModel, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Every field of `variable` as JSON-ready data, minus `exclude`."""
    data: dict[str, Any] = {}
    for field in dataclasses.fields(variable):
        if field.name in exclude:
            continue
        data[_TO_JSON_KEY.get(field.name, field.name)] = _to_json(getattr(variable, field.name))
    return data


def strip_volatile(variable: VariableModel, *extra: str) -> dict[str, Any]:
    """Save model base: all fields except runtime-only ones."""
    return variable_to_dict(variable, exclude=VOLATILE_FIELDS + extra)


def _datasource_from_json(value: Any) -> DataSourceRef | None:
    if value is None or value == "":
        return None
    if isinstance(value, DataSourceRef):
        return value
    if isinstance(value, str):
        # Older dashboards reference data sources by name
        return DataSourceRef(uid=value)
    if isinstance(value, dict):
        return DataSourceRef(uid=value.get("uid"), type=value.get("type"))
    return None


def _field_from_json(name: str, value: Any) -> Any:
    if name in _ENUM_FIELDS and value is not None:
        try:
            return _ENUM_FIELDS[name](value)
        except ValueError:
            logger.warning("[SERIALIZE] Invalid %s value %r, keeping default", name, value)
            return dataclasses.MISSING
    if name == "current":
        return option_from_dict(value)
    if name == "options":
        return [option_from_dict(o) for o in value or []]
    if name == "datasource":
        return _datasource_from_json(value)
    if name == "filters":
        return [
            f
            if isinstance(f, AdHocVariableFilter)
            else AdHocVariableFilter(
                key=f.get("key", ""),
                operator=f.get("operator", "="),
                value=f.get("value", ""),
                condition=f.get("condition", ""),
            )
            for f in value or []
        ]
    return value


def variable_from_dict(data: dict[str, Any]) -> VariableModel:
    """Build a variable model from a save model.

    Unknown keys are ignored. The id defaults to the variable name.

    Raises:
        UnknownVariableTypeError: If no adapter is registered for the type.
    """
    type_id = data.get("type", VariableType.QUERY.value)
    adapter = variable_adapters.get(type_id)
    model_class = adapter.model_class
    field_names = {f.name for f in dataclasses.fields(model_class)}

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = _FROM_JSON_KEY.get(key, key)
        if name not in field_names:
            logger.debug("[SERIALIZE] Ignoring unknown key %r on %s variable", key, type_id)
            continue
        converted = _field_from_json(name, value)
        if converted is not dataclasses.MISSING:
            kwargs[name] = converted

    variable = model_class(**kwargs)
    if not data.get("id"):
        variable.id = variable.name
    return variable
