"""
Cooldown duration parsing.

Accepts one non-negative integer immediately followed by a single unit letter:
    s = seconds, m = minutes, h = hours, d = days, w = weeks
Examples: "30s", "5m", "1h", "2d", "1w".

Empty input is NOT handled here: an empty cooldown means "one-shot rule" and
the caller must special-case it before calling parse_duration().
"""
import re
from datetime import timedelta

UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3_600,
    "d": 86_400,
    "w": 604_800,
}

_DURATION_RE = re.compile(r"([0-9]+)([smhdw])", re.ASCII)

# Largest number of whole seconds a timedelta can hold
MAX_DURATION_SECONDS = timedelta.max // timedelta(seconds=1)


class DurationError(ValueError):
    """Base class for cooldown parsing failures."""
    code = "DurationError"

    def __init__(self, text, message: str):
        super().__init__(message)
        self.text = text


class InvalidDurationFormat(DurationError):
    code = "InvalidDurationFormat"

    def __init__(self, text):
        super().__init__(
            text,
            f"Invalid duration {text!r}: expected <integer><unit> with unit in s, m, h, d, w (e.g. 30s, 5m, 1h)"
        )


class DurationOverflow(DurationError):
    code = "DurationOverflow"

    def __init__(self, text):
        super().__init__(text, f"Duration {text!r} is too large")


def parse_duration(text: str) -> timedelta:
    """
    Parse a cooldown string into a timedelta.

    Args:
        text: Duration text such as "30s", "5m" or "1w"

    Returns:
        Normalized timedelta

    Raises:
        InvalidDurationFormat: text does not match <int><unit> exactly
        DurationOverflow: value * unit exceeds what a timedelta can represent
    """
    if not isinstance(text, str):
        raise InvalidDurationFormat(text)

    match = _DURATION_RE.fullmatch(text)
    if match is None:
        raise InvalidDurationFormat(text)

    value, unit = match.groups()
    seconds = int(value) * UNIT_SECONDS[unit]
    if seconds > MAX_DURATION_SECONDS:
        raise DurationOverflow(text)

    return timedelta(seconds=seconds)


def format_duration(duration: timedelta) -> str:
    """Render a timedelta back into the largest exact unit ("300s" -> "5m")."""
    seconds = int(duration.total_seconds())
    for unit in ("w", "d", "h", "m"):
        size = UNIT_SECONDS[unit]
        if seconds and seconds % size == 0:
            return f"{seconds // size}{unit}"
    return f"{seconds}s"
