"""Unit normalization for captured numeric values.

Only time units are converted (to milliseconds). Any other unit suffix is
passed through unchanged.
"""

from typing import Optional

# unit suffix -> (multiplier, divisor) into milliseconds
TIME_UNITS_TO_MS = {
    "s": (1000, 1),
    "ms": (1, 1),
    "us": (1, 1000),
    "µs": (1, 1000),  # micro sign
    "μs": (1, 1000),  # greek mu
    "microseconds": (1, 1000),
    "ns": (1, 1_000_000),
}


def is_time_unit(unit: Optional[str]) -> bool:
    return bool(unit) and unit in TIME_UNITS_TO_MS


def normalize_value(raw: str, unit: Optional[str] = None) -> Optional[float]:
    """Convert a captured value plus optional unit suffix into a float.

    Returns None only when `raw` is not a number. Time units are converted to
    milliseconds; a missing or unknown unit leaves the value unconverted.
    """
    try:
        base = float(raw)
    except (TypeError, ValueError):
        return None

    if not is_time_unit(unit):
        return base

    multiplier, divisor = TIME_UNITS_TO_MS[unit]
    if divisor != 1:
        return base / divisor
    return base * multiplier
