"""
Time arithmetic shared by the validator, the auto-scheduler and the conflict
detector. All ranges are half-open: [start, end).
"""
import re
from typing import Tuple, Union

from service.errors import FormatError, InvalidRangeError

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")

MINUTES_PER_DAY = 24 * 60


def to_minutes(hhmm: str) -> int:
    """Parse ``H:MM`` or ``HH:MM:SS`` into minutes since midnight."""
    if not isinstance(hhmm, str):
        raise FormatError(f"Time must be a string in HH:MM format, got {hhmm!r}.")

    match = _TIME_RE.match(hhmm)
    if not match:
        raise FormatError(f"Invalid time '{hhmm}'. Use HH:MM format (e.g., '08:30').")

    hours, minutes, seconds = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise FormatError(f"Invalid time '{hhmm}'. Use HH:MM format (e.g., '08:30').")

    return hours * 60 + minutes


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True iff the two half-open ranges share at least one minute."""
    return a_start < b_end and b_start < a_end


def to_hhmm(minutes: int) -> str:
    """Format minutes since midnight as HH:MM."""
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise InvalidRangeError(f"{minutes} minutes is outside a single day.")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _as_minutes(value: Union[int, str]) -> int:
    if isinstance(value, str):
        return to_minutes(value)
    return int(value)


def duration_hhmm(start: Union[int, str], end: Union[int, str]) -> str:
    """Duration between two times as HH:MM. End must be after start."""
    start_min, end_min = _as_minutes(start), _as_minutes(end)
    if end_min <= start_min:
        raise InvalidRangeError(
            f"End time ({to_hhmm(end_min)}) must be after start time ({to_hhmm(start_min)})."
        )
    return to_hhmm(end_min - start_min)


def parse_time_range(value: str) -> Tuple[int, int]:
    """Parse a window such as ``08:00-12:00`` into (start, end) minutes."""
    parts = value.split("-") if isinstance(value, str) else []
    if len(parts) != 2:
        raise FormatError(f"Invalid time range '{value}'. Use HH:MM-HH:MM format (e.g., '08:00-12:00').")

    start, end = to_minutes(parts[0]), to_minutes(parts[1])
    if end <= start:
        raise InvalidRangeError(f"Time range '{value}': start time must be before end time.")
    return start, end
