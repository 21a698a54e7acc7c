"""
Playback — External player launch and a terminal caption preview.

play_video() opens the result with the best available player:
  1. VLC (with --sub-file when a separate .srt is given)
  2. mpv (with --sub-file)
  3. System default player

TerminalPreview replays the captions on stdout against a wall clock,
driven by the PlaybackSynchronizer, so timing can be checked without a
video player.
"""

import os
import sys
import time
import shutil
import logging
import subprocess
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO

from .style import AnimationKind, StyleConfig
from .synchronizer import PlaybackSynchronizer, Ticker
from .timecode import seconds_to_timecode

logger = logging.getLogger(__name__)

# ── Player detection ────────────────────────────────────────────


def _find_vlc() -> Optional[str]:
    """Find VLC executable path."""
    vlc = shutil.which("vlc")
    if vlc:
        return vlc

    if sys.platform == "win32":
        for p in (
            Path(r"C:\Program Files\VideoLAN\VLC\vlc.exe"),
            Path(r"C:\Program Files (x86)\VideoLAN\VLC\vlc.exe"),
        ):
            if p.exists():
                return str(p)
    elif sys.platform == "darwin":
        mac_vlc = Path("/Applications/VLC.app/Contents/MacOS/VLC")
        if mac_vlc.exists():
            return str(mac_vlc)
    elif Path("/snap/bin/vlc").exists():
        return "/snap/bin/vlc"

    return None


def _find_mpv() -> Optional[str]:
    return shutil.which("mpv")


def player_command(player: str, exe: str, video_path: Path,
                   srt_path: Optional[Path] = None) -> list:
    cmd = [exe, str(video_path)]
    if srt_path is not None:
        cmd.append(f"--sub-file={srt_path}")
        if player == "VLC":
            cmd.append("--no-sub-autodetect-file")
    return cmd


def play_with_system_default(video_path: Path) -> None:
    """Open video with the OS default application."""
    logger.info(f"Opening with system default: {video_path}")
    if sys.platform == "win32":
        os.startfile(str(video_path))
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(video_path)])
    else:
        subprocess.Popen(["xdg-open", str(video_path)])


def play_video(video_path: Path, srt_path: Optional[Path] = None) -> str:
    """
    Play a video using the best available player.

    Args:
        video_path: Video to open; a burned-in output needs no srt_path.
        srt_path: Optional subtitle file to load alongside.

    Returns:
        The name of the player used.
    """
    video_path = Path(video_path).resolve()
    if not video_path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")
    if srt_path is not None:
        srt_path = Path(srt_path).resolve()
        if not srt_path.exists():
            raise FileNotFoundError(f"Subtitle file not found: {srt_path}")

    for name, exe in (("VLC", _find_vlc()), ("mpv", _find_mpv())):
        if exe:
            cmd = player_command(name, exe, video_path, srt_path)
            logger.info(f"Launching {name}: {' '.join(cmd)}")
            subprocess.Popen(cmd)
            return name

    play_with_system_default(video_path)
    if srt_path is not None:
        return "system default (place .srt next to video for auto-load)"
    return "system default"


# ── Terminal preview ────────────────────────────────────────────


class WallClock:
    """Playback position estimated from elapsed monotonic time."""

    def __init__(self, start_offset: float = 0.0, now: Callable[[], float] = time.monotonic):
        self._now = now
        self._start_offset = start_offset
        self._launch_time = now()

    def __call__(self) -> float:
        return self._start_offset + (self._now() - self._launch_time)

    def seek(self, position: float):
        """Jump to position (seconds); backward jumps are allowed."""
        self._start_offset = max(0.0, position)
        self._launch_time = self._now()


def format_caption(text: str, style: StyleConfig) -> str:
    """One-line terminal rendering of a caption."""
    if style.animation is AnimationKind.TYPEWRITER:
        return f"▌ {text}"
    if style.animation is AnimationKind.BOUNCE:
        return f"↑ {text}"
    if style.animation is AnimationKind.SCALE:
        return f"» {text.upper()} «"
    return text


class TerminalPreview:
    """
    Prints captions to a stream as they become active.

    Usage:
        preview = TerminalPreview(segments, style)
        preview.run()        # blocks until the last caption ends
    """

    def __init__(
        self,
        segments: Sequence,
        style: Optional[StyleConfig] = None,
        tick_interval: float = 1 / 30,
        stream: TextIO = sys.stdout,
        clock: Optional[WallClock] = None,
    ):
        self.segments = tuple(segments)
        self.style = style or StyleConfig()
        self.stream = stream
        self.clock = clock or WallClock()
        self.synchronizer = PlaybackSynchronizer(
            self.clock, self._render, ticker=Ticker(tick_interval, name="terminal-preview"),
        )
        self._lock = threading.Lock()

    @property
    def duration(self) -> float:
        return max((s.end for s in self.segments), default=0.0)

    def _render(self, text: Optional[str]):
        stamp = seconds_to_timecode(self.clock())
        with self._lock:
            if text is None:
                self.stream.write(f"[{stamp}]\n")
            else:
                self.stream.write(f"[{stamp}] {format_caption(text, self.style)}\n")
            self.stream.flush()

    def run(self, poll: float = 0.1):
        """Play through all captions, then stop. Ctrl+C ends early."""
        logger.info(
            f"Preview: {len(self.segments)} captions, {self.duration:.1f}s, "
            f"animation={self.style.animation.value}"
        )
        self.clock.seek(0.0)
        self.synchronizer.start(self.segments)
        try:
            while self.clock() < self.duration + poll:
                time.sleep(poll)
        finally:
            self.synchronizer.stop()
