"""
Timecode Codec — SRT timestamps (HH:MM:SS,mmm).

Seconds are rounded to the nearest millisecond, never truncated, and
negative or non-finite input is clamped to zero so a malformed timecode
can never be produced.
"""

import math
import re

_TIMECODE_RE = re.compile(r"^(\d{2,}):(\d{2}):(\d{2}),(\d{3})$")


def seconds_to_timecode(seconds: float) -> str:
    """
    Convert seconds to an SRT timestamp.

    Args:
        seconds: Time in seconds (e.g., 3661.0005)

    Returns:
        Formatted timestamp (e.g., "01:01:01,001")
    """
    try:
        seconds = float(seconds)
    except (TypeError, ValueError):
        seconds = 0.0
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0.0

    # Python's round() is banker's rounding on exact .5; use half-up
    total = int(math.floor(seconds * 1000 + 0.5))

    millis = total % 1000
    total_seconds = (total - millis) // 1000
    secs = total_seconds % 60
    total_minutes = (total_seconds - secs) // 60
    minutes = total_minutes % 60
    hours = (total_minutes - minutes) // 60

    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def timecode_to_seconds(timecode: str) -> float:
    """
    Parse an SRT timestamp back into seconds.

    Raises:
        ValueError: If the string is not HH:MM:SS,mmm.
    """
    m = _TIMECODE_RE.match(timecode.strip())
    if not m:
        raise ValueError(f"Invalid SRT timecode: {timecode!r}")

    hours, minutes, secs, millis = (int(g) for g in m.groups())
    if minutes > 59 or secs > 59:
        raise ValueError(f"Invalid SRT timecode: {timecode!r}")

    total_ms = ((hours * 60 + minutes) * 60 + secs) * 1000 + millis
    return total_ms / 1000.0
