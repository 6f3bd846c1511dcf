"""Utilities - intervals, editor regexes, logging."""

from dashvars.utilities.intervals import (
    calculate_interval,
    interval_to_ms,
    round_interval,
    seconds_to_hms,
)
from dashvars.utilities.logging import setup_logging
from dashvars.utilities.regex import VariableRegex, string_to_regex

__all__ = [
    "VariableRegex",
    "calculate_interval",
    "interval_to_ms",
    "round_interval",
    "seconds_to_hms",
    "setup_logging",
    "string_to_regex",
]
