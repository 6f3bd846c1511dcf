"""Date format for epoch-millisecond values such as $__from and $__to."""

from datetime import UTC, datetime

from core import VariableModel
from template_resolver.registry import (
    FormatOptions,
    FormatRegistryID,
    register_format,
)


def _to_millis(value) -> int | None:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


@register_format(
    id=FormatRegistryID.DATE,
    name="Date",
    description="Format date in different ways: date:ms, date:seconds, date:iso or a strftime pattern",
)
def format_date(options: FormatOptions, variable: VariableModel | None) -> str:
    millis = _to_millis(options.value)
    if millis is None:
        return str(options.value)

    arg = ":".join(options.args) if options.args else "iso"
    if arg == "ms":
        return str(options.value)
    if arg == "seconds":
        return str(round(millis / 1000))

    moment = datetime.fromtimestamp(millis / 1000, UTC)
    if arg == "iso":
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return moment.strftime(arg)
