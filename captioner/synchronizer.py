"""
Playback Synchronizer — Keeps the on-screen caption in step with playback.

On every tick the current playback time is read from an injectable clock,
the active segment is found by a linear scan, and the render callback is
invoked only when the active segment changes:

  - a new segment becomes active  → render(text)
  - no segment is active anymore  → render(None)  (clear)
  - same segment as last tick     → nothing

Ticks come from a Ticker (a background thread) in normal use, or are
stepped manually with tick() against a virtual clock in tests.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Zero-argument callable returning the playback position in seconds
PlaybackClock = Callable[[], float]

# Receives the text to show, or None to clear the caption
RenderCallback = Callable[[Optional[str]], None]


class SyncState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class Unchanged:
    """Tick result: the active segment did not change."""


@dataclass(frozen=True)
class Changed:
    """Tick result: the active segment changed."""
    index: Optional[int]
    text: Optional[str]

    @property
    def cleared(self) -> bool:
        return self.index is None


UNCHANGED = Unchanged()

TickResult = Union[Unchanged, Changed]


def find_active_index(t: float, segments: Sequence) -> Optional[int]:
    """
    Find the segment active at playback time t.

    Segments are scanned in ascending start order and the first one with
    start <= t < end wins, so with overlapping segments the earlier-starting
    one stays on screen for as long as its interval holds.

    Returns:
        Index into segments, or None if no segment covers t.
    """
    for i, seg in enumerate(segments):
        if seg.start <= t < seg.end:
            return i
    return None


class Ticker:
    """
    Calls a function at a fixed interval on a background thread.

    Stands in for a display-refresh callback: each call is expected to be
    short and must not block on I/O.
    """

    def __init__(self, interval: float = 1 / 30, name: str = "caption-ticker"):
        self.interval = interval
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, fn: Callable[[], object]):
        """Start calling fn every interval seconds (restarts if running)."""
        self.stop()
        self._stop_event = threading.Event()
        stop_event = self._stop_event

        def _loop():
            logger.debug(f"Ticker '{self.name}' started ({self.interval * 1000:.0f}ms)")
            try:
                while not stop_event.is_set():
                    fn()
                    stop_event.wait(self.interval)
            except Exception:
                logger.exception(f"Ticker '{self.name}' callback failed; stopping")
            logger.debug(f"Ticker '{self.name}' stopped")

        self._thread = threading.Thread(target=_loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the loop. Safe to call repeatedly, or from inside the callback."""
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=2.0)


class PlaybackSynchronizer:
    """
    Tracks which segment is active for a moving playback clock.

    State machine: IDLE --start()--> RUNNING --stop()--> IDLE.
    The active index (the render state) is owned by this instance and is
    only changed on a detected transition.
    """

    def __init__(
        self,
        clock: PlaybackClock,
        on_render: RenderCallback,
        ticker: Optional[Ticker] = None,
    ):
        """
        Args:
            clock: Returns the current playback position in seconds.
            on_render: Called with the new text, or None to clear.
            ticker: Tick source. If None, the caller drives tick() itself.
        """
        self._clock = clock
        self._on_render = on_render
        self._ticker = ticker
        self._lock = threading.RLock()

        self._state = SyncState.IDLE
        self._segments: Sequence = ()
        self._active_index: Optional[int] = None
        self._ticks = 0

    # ── Public API ──────────────────────────────────────────

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def active_index(self) -> Optional[int]:
        return self._active_index

    @property
    def active_text(self) -> Optional[str]:
        with self._lock:
            if self._active_index is None:
                return None
            return self._segments[self._active_index].text

    def start(self, segments: Sequence):
        """Begin tracking a new (normalized) segment sequence."""
        self.stop()
        with self._lock:
            self._segments = tuple(segments)
            self._active_index = None
            self._ticks = 0
            self._state = SyncState.RUNNING

        logger.info(f"Synchronizer started with {len(self._segments)} segments")
        if self._ticker is not None:
            self._ticker.start(self.tick)

    def stop(self):
        """
        Stop tracking. The last rendered text is left as-is; callers clear
        it explicitly if they want to.
        """
        if self._ticker is not None:
            self._ticker.stop()
        with self._lock:
            if self._state is SyncState.RUNNING:
                logger.info(f"Synchronizer stopped after {self._ticks} ticks")
            self._state = SyncState.IDLE

    def tick(self) -> TickResult:
        """
        Run one poll step.

        Returns:
            UNCHANGED when the active segment is the same as last tick (or
            the synchronizer is idle), otherwise Changed(index, text).
        """
        with self._lock:
            if self._state is not SyncState.RUNNING:
                return UNCHANGED

            self._ticks += 1
            t = self._clock()
            idx = find_active_index(t, self._segments)

            if idx == self._active_index:
                return UNCHANGED

            self._active_index = idx
            text = None if idx is None else self._segments[idx].text
            logger.debug(
                f"t={t:.3f}s → "
                + (f"segment #{idx}: {text[:40]}" if text is not None else "clear")
            )
            self._on_render(text)
            return Changed(idx, text)

    def restyle(self) -> TickResult:
        """
        Re-issue the current caption, e.g. after the animation style changed.
        Does nothing when no segment is active.
        """
        with self._lock:
            if self._active_index is None:
                return UNCHANGED
            text = self._segments[self._active_index].text
            self._on_render(text)
            return Changed(self._active_index, text)

    def clear(self) -> TickResult:
        """Stop, forget the segments, and clear any caption on screen."""
        self.stop()
        with self._lock:
            had_text = self._active_index is not None
            self._segments = ()
            self._active_index = None
            if not had_text:
                return UNCHANGED
            self._on_render(None)
            return Changed(None, None)
