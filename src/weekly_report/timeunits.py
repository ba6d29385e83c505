"""Conversions between JIRA time-tracking seconds, hours and man-days."""

import math
from decimal import ROUND_HALF_UP, Decimal

HOURS_PER_MAN_DAY = 8
SECONDS_PER_HOUR = 3600


def _as_number(value) -> float:
    """Return value as a finite number, or 0 for anything else."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return value


def _round_to_int(value: float) -> int:
    return math.floor(value + 0.5)


def round_half_up(value: float, places: int = 2) -> float:
    """Round the exact binary value half away from zero, e.g. 0.125 -> 0.13."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def seconds_to_hours(seconds) -> float:
    """Convert seconds to hours, rounded to 2 decimals. Bad input gives 0."""
    seconds = _as_number(seconds)
    if not seconds:
        return 0
    return round_half_up(seconds / SECONDS_PER_HOUR)


def hours_to_man_days(hours) -> float:
    """Convert hours to man-days (8h each), rounded to 2 decimals. Bad input gives 0."""
    hours = _as_number(hours)
    if not hours:
        return 0
    return round_half_up(hours / HOURS_PER_MAN_DAY)


def format_man_days(man_days) -> str:
    """Render a man-day quantity, e.g. "1d 4h", "3d", "4h" or "-2h"."""
    man_days = _as_number(man_days)
    if man_days == 0:
        return "0d"

    sign = "-" if man_days < 0 else ""
    magnitude = abs(man_days)

    if magnitude < 1:
        return f"{sign}{_round_to_int(magnitude * HOURS_PER_MAN_DAY)}h"

    days = math.floor(magnitude)
    hours = _round_to_int((magnitude - days) * HOURS_PER_MAN_DAY)
    if hours == 0:
        return f"{sign}{days}d"
    return f"{sign}{days}d {hours}h"


def format_hours(hours) -> str:
    """Render hours as "2h" or "1h30m"."""
    hours = _as_number(hours)
    if hours == 0:
        return "0h"
    whole_hours = math.floor(hours)
    minutes = _round_to_int((hours - whole_hours) * 60)
    if minutes == 0:
        return f"{whole_hours}h"
    return f"{whole_hours}h{minutes}m"


def format_duration(seconds) -> str:
    """Render a JIRA seconds value as hours and minutes."""
    if not _as_number(seconds):
        return "0h"
    return format_hours(seconds_to_hours(seconds))
