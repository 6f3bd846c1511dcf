"""Interval strings (`10s`, `5m`, `1d`) and auto interval calculation."""

import re

from core import TimeRange

INTERVAL_UNITS_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
    "M": 2_592_000_000,
    "y": 31_536_000_000,
}

_INTERVAL_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d|w|M|y)?$")

# (upper bound exclusive, rounded interval) in milliseconds
_ROUNDING_STEPS = (
    (10, 1),
    (15, 10),
    (35, 20),
    (75, 50),
    (150, 100),
    (350, 200),
    (750, 500),
    (1_500, 1_000),
    (3_500, 2_000),
    (7_500, 5_000),
    (12_500, 10_000),
    (17_500, 15_000),
    (25_000, 20_000),
    (45_000, 30_000),
    (90_000, 60_000),
    (210_000, 120_000),
    (450_000, 300_000),
    (750_000, 600_000),
    (1_050_000, 900_000),
    (1_500_000, 1_200_000),
    (2_700_000, 1_800_000),
    (5_400_000, 3_600_000),
    (9_000_000, 7_200_000),
    (16_200_000, 10_800_000),
    (32_400_000, 21_600_000),
    (86_400_000, 43_200_000),
    (604_800_000, 86_400_000),
    (1_814_400_000, 604_800_000),
    (3_628_800_000, 2_592_000_000),
)
_ONE_YEAR_MS = 31_536_000_000


def interval_to_ms(interval: str) -> int:
    """Parse an interval string into milliseconds. Unit-less values are seconds."""
    match = _INTERVAL_PATTERN.match(interval.strip())
    if not match:
        raise ValueError(
            f"Invalid interval string '{interval}', has to be either unit-less "
            'or end with one of the following units: "y, M, w, d, h, m, s, ms"'
        )
    amount, unit = match.groups()
    return int(float(amount) * INTERVAL_UNITS_MS[unit or "s"])


def round_interval(interval_ms: float) -> int:
    """Snap a raw interval to the nearest "nice" step."""
    for upper, rounded in _ROUNDING_STEPS:
        if interval_ms < upper:
            return rounded
    return _ONE_YEAR_MS


def seconds_to_hms(seconds: float) -> str:
    """Largest whole unit of a duration, e.g. 600 -> '10m'."""
    years = int(seconds // 31_536_000)
    if years:
        return f"{years}y"
    days = int((seconds % 31_536_000) // 86_400)
    if days:
        return f"{days}d"
    hours = int((seconds % 31_536_000 % 86_400) // 3_600)
    if hours:
        return f"{hours}h"
    minutes = int((seconds % 31_536_000 % 86_400 % 3_600) // 60)
    if minutes:
        return f"{minutes}m"
    whole_seconds = int(seconds % 31_536_000 % 86_400 % 3_600 % 60)
    if whole_seconds:
        return f"{whole_seconds}s"
    millis = int(seconds * 1000)
    if millis:
        return f"{millis}ms"
    return "less than a millisecond"


def calculate_interval(time_range: TimeRange, resolution: int, low_limit: str | None = None) -> tuple[int, str]:
    """Interval splitting `time_range` into about `resolution` buckets.

    Returns:
        (interval in milliseconds, interval string)
    """
    low_limit_ms = interval_to_ms(low_limit) if low_limit else 1
    interval_ms = round_interval((time_range.to_ms - time_range.from_ms) / max(resolution, 1))
    if low_limit_ms > interval_ms:
        interval_ms = low_limit_ms
    return interval_ms, seconds_to_hms(interval_ms / 1000)
