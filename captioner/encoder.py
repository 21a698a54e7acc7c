"""
Burn-in Encoder — Composites subtitles into video frames with FFmpeg.

Encoding is tried with a primary (quality) codec profile first. If that
attempt fails for any reason, e.g. the codec is not compiled into the
local FFmpeg, exactly one retry is made with a broadly-compatible
fallback profile. Both profiles share the same audio, container and
subtitle filter settings.

FFmpeg writes to a partial file next to the output, which is renamed
into place only after a successful attempt.
"""

import os
import enum
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# FFmpeg unescapes filter arguments twice: first while splitting the
# graph, then while splitting the filter's key=value options
_OPTION_SPECIALS = "\\':"
_GRAPH_SPECIALS = "\\'[],;"


@dataclass(frozen=True)
class CodecProfile:
    """Video codec settings for one encode attempt."""
    name: str
    video_codec: str
    video_args: Tuple[str, ...] = ()
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    faststart: bool = True


PRIMARY_PROFILE = CodecProfile(
    name="primary",
    video_codec="libx264",
    video_args=("-preset", "veryfast", "-crf", "23", "-pix_fmt", "yuv420p"),
)

FALLBACK_PROFILE = CodecProfile(
    name="fallback",
    video_codec="mpeg4",
    video_args=("-q:v", "3"),
)


class Attempt(enum.Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class EncodeStatus(enum.Enum):
    PRIMARY_SUCCESS = "primary_success"
    FALLBACK_SUCCESS = "fallback_success"
    FAILURE = "failure"


@dataclass(frozen=True)
class AttemptResult:
    attempt: Attempt
    profile: str
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class EncodeOutcome:
    """Tagged result of the primary/fallback strategy."""
    status: EncodeStatus
    attempts: Tuple[AttemptResult, ...] = field(default_factory=tuple)
    output: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status is not EncodeStatus.FAILURE

    @property
    def used_fallback(self) -> bool:
        return self.status is EncodeStatus.FALLBACK_SUCCESS


class EncodeAttemptError(Exception):
    """One FFmpeg encode attempt failed."""


# ── Command construction ────────────────────────────────────────


def _escape(value: str, specials: str) -> str:
    return "".join("\\" + c if c in specials else c for c in value)


def escape_filter_value(value: str) -> str:
    """Escape a filter option value for both FFmpeg parsing levels."""
    return _escape(_escape(value, _OPTION_SPECIALS), _GRAPH_SPECIALS)


def escape_filter_path(path) -> str:
    """Escape a file path, e.g. C:/clips/subs.srt, for use as a filter option."""
    s = str(path)
    if os.name == "nt":
        s = s.replace("\\", "/")
    return escape_filter_value(s)


def subtitle_filter(srt_path, style) -> str:
    """Build the `subtitles=` video filter for a style snapshot."""
    return (
        f"subtitles={escape_filter_path(srt_path)}"
        f":force_style={escape_filter_value(style.force_style())}"
    )


def build_burn_command(
    source: Path,
    srt_path: Path,
    output: Path,
    profile: CodecProfile,
    style,
    binary: str = "ffmpeg",
) -> List[str]:
    cmd = [
        binary, "-y",
        "-i", str(source),
        "-vf", subtitle_filter(srt_path, style),
        "-c:v", profile.video_codec,
        *profile.video_args,
        "-c:a", profile.audio_codec,
        "-b:a", profile.audio_bitrate,
    ]
    if profile.faststart:
        cmd += ["-movflags", "+faststart"]
    cmd += ["-loglevel", "error", str(output)]
    return cmd


def partial_path(output: Path) -> Path:
    """Where FFmpeg writes before the output is published."""
    output = Path(output)
    return output.with_name(f"{output.stem}.partial{output.suffix}")


# ── Strategy ────────────────────────────────────────────────────


def encode_with_fallback(
    run_attempt: Callable[[CodecProfile], None],
    primary: CodecProfile = PRIMARY_PROFILE,
    fallback: CodecProfile = FALLBACK_PROFILE,
    on_attempt: Optional[Callable[[Attempt, CodecProfile], None]] = None,
) -> EncodeOutcome:
    """
    Run the primary profile, then the fallback profile once if it fails.

    Args:
        run_attempt: Encodes with the given profile; raises on failure.
        primary: Preferred profile.
        fallback: Compatible profile used at most once.
        on_attempt: Optional hook called before each attempt.

    Returns:
        EncodeOutcome tagged PRIMARY_SUCCESS, FALLBACK_SUCCESS or FAILURE.
    """
    attempts: List[AttemptResult] = []

    for attempt, profile in ((Attempt.PRIMARY, primary), (Attempt.FALLBACK, fallback)):
        if on_attempt:
            on_attempt(attempt, profile)
        try:
            run_attempt(profile)
        except Exception as e:
            logger.warning(f"Encode attempt '{profile.name}' ({profile.video_codec}) failed: {e}")
            attempts.append(AttemptResult(attempt, profile.name, ok=False, error=str(e)))
            continue

        attempts.append(AttemptResult(attempt, profile.name, ok=True))
        status = (EncodeStatus.PRIMARY_SUCCESS if attempt is Attempt.PRIMARY
                  else EncodeStatus.FALLBACK_SUCCESS)
        return EncodeOutcome(status, tuple(attempts))

    return EncodeOutcome(EncodeStatus.FAILURE, tuple(attempts))


# ── FFmpeg runner ───────────────────────────────────────────────


class BurnInEncoder:
    """Burns an SRT file into a video using FFmpeg."""

    def __init__(
        self,
        primary: CodecProfile = PRIMARY_PROFILE,
        fallback: CodecProfile = FALLBACK_PROFILE,
        timeout: Optional[float] = 600.0,
        binary: str = "ffmpeg",
    ):
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout
        self.binary = binary

    def run_profile(
        self,
        source: Path,
        srt_path: Path,
        output: Path,
        style,
        profile: CodecProfile,
        timeout: Optional[float] = None,
    ):
        """
        Run a single FFmpeg encode.

        Raises:
            EncodeAttemptError: On non-zero exit, timeout, or missing binary.
        """
        timeout = self.timeout if timeout is None else timeout
        cmd = build_burn_command(source, srt_path, output, profile, style, self.binary)
        logger.info(f"Encoding with '{profile.name}' profile ({profile.video_codec})")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise EncodeAttemptError(f"timed out after {timeout:.0f}s") from e
        except FileNotFoundError as e:
            raise EncodeAttemptError(f"FFmpeg not found: {self.binary}") from e

        if result.returncode != 0:
            tail = "\n".join((result.stderr or "").splitlines()[-20:])
            raise EncodeAttemptError(f"exit code {result.returncode}: {tail}")

    def burn(
        self,
        source: Path,
        srt_path: Path,
        output: Path,
        style,
        timeout: Optional[float] = None,
        on_attempt: Optional[Callable[[Attempt, CodecProfile], None]] = None,
    ) -> EncodeOutcome:
        """
        Burn subtitles into source, publishing output only on success.

        Returns:
            EncodeOutcome; on FAILURE no file exists at output (a previous
            output at that path is left untouched).
        """
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        partial = partial_path(output)

        def _attempt(profile: CodecProfile):
            try:
                self.run_profile(source, srt_path, partial, style, profile, timeout)
            except Exception:
                _discard(partial)
                raise

        try:
            outcome = encode_with_fallback(_attempt, self.primary, self.fallback, on_attempt)
        except BaseException:
            _discard(partial)
            raise

        if not outcome.ok:
            return outcome

        os.replace(partial, output)
        logger.info(f"Encoded output published: {output}")
        return EncodeOutcome(outcome.status, outcome.attempts, output)


def _discard(path: Path):
    if path.exists():
        path.unlink()
        logger.debug(f"Removed partial output: {path}")


def describe_attempts(attempts: Sequence[AttemptResult]) -> str:
    return "; ".join(
        f"{a.profile}: {'ok' if a.ok else a.error}" for a in attempts
    )
