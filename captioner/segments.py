"""
Segment Model — Timed text units produced by speech recognition.

Raw recognizer output is normalized exactly once on receipt:
  - blank text is dropped
  - timing is validated (finite, non-negative, end > start)
  - entries are stably sorted by start time

The normalized sequence is an immutable tuple shared by the synchronizer
and the SRT writer. A new generation replaces it wholesale.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Tuple

from .errors import InvalidSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    """A single recognized phrase with start/end offsets in seconds."""
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, t: float) -> bool:
        """Half-open interval test: start <= t < end."""
        return self.start <= t < self.end

    def __repr__(self):
        return (f"Segment({self.start:.2f}–{self.end:.2f}s, "
                f"'{self.text[:40]}')")


def _field(raw: Any, name: str, position: int) -> Any:
    """Read a field from a mapping, an object, or a (start, end, text) tuple."""
    if isinstance(raw, dict):
        return raw.get(name)
    if isinstance(raw, (tuple, list)):
        return raw[position] if len(raw) > position else None
    return getattr(raw, name, None)


def _as_bound(value: Any, name: str, raw: Any) -> float:
    if isinstance(value, bool):
        raise InvalidSegment(f"Segment {name} is not a number: {raw!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidSegment(f"Segment {name} is not a number: {raw!r}")
    if not math.isfinite(number):
        raise InvalidSegment(f"Segment {name} is not finite: {raw!r}")
    if number < 0:
        raise InvalidSegment(f"Segment {name} is negative: {raw!r}")
    return number


def normalize(raw_segments: Iterable[Any]) -> Tuple[Segment, ...]:
    """
    Validate and order raw recognizer segments.

    Args:
        raw_segments: Iterable of {start, end, text} dicts, objects with
            those attributes, or (start, end, text) tuples, in any order.

    Returns:
        Tuple of Segment sorted ascending by start (stable on ties).

    Raises:
        InvalidSegment: If a non-blank entry has end <= start, or a bound
            that is negative, non-finite or not a number.
    """
    accepted = []
    dropped = 0

    for raw in raw_segments:
        text = (_field(raw, "text", 2) or "")
        text = str(text).strip()
        if not text:
            dropped += 1
            continue

        start = _as_bound(_field(raw, "start", 0), "start", raw)
        end = _as_bound(_field(raw, "end", 1), "end", raw)
        if end <= start:
            raise InvalidSegment(
                f"Segment end must be after start "
                f"({start:.3f}s → {end:.3f}s): '{text[:40]}'"
            )

        accepted.append(Segment(start, end, text))

    # sorted() is stable: equal starts keep their input order
    ordered = tuple(sorted(accepted, key=lambda s: s.start))

    if dropped:
        logger.debug(f"Dropped {dropped} blank segment(s)")
    logger.debug(f"Normalized {len(ordered)} segment(s)")
    return ordered
