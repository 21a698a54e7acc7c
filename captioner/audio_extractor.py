"""
Audio Extractor — FFmpeg-based audio extraction from video files.

Extracts the audio track from any video format and converts it to
16kHz mono 16-bit PCM WAV suitable for speech recognition.
"""

import os
import subprocess
import tempfile
import logging
from pathlib import Path
from typing import Optional

from .errors import AudioExtractionError

logger = logging.getLogger(__name__)


def verify_ffmpeg(binary: str = "ffmpeg") -> str:
    """
    Check that FFmpeg is available.

    Returns:
        The first line of `ffmpeg -version`.

    Raises:
        RuntimeError: If FFmpeg is missing or broken.
    """
    try:
        result = subprocess.run(
            [binary, "-version"],
            capture_output=True, text=True, timeout=10
        )
    except FileNotFoundError:
        raise RuntimeError(
            "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
            "Download: https://ffmpeg.org/download.html"
        )
    if result.returncode != 0:
        raise RuntimeError("FFmpeg returned non-zero exit code")
    version_line = result.stdout.split("\n")[0]
    logger.debug(f"FFmpeg found: {version_line}")
    return version_line


class AudioExtractor:
    """Extracts and downsamples audio from video files using FFmpeg."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        timeout: Optional[float] = 120.0,
        binary: str = "ffmpeg",
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeout = timeout
        self.binary = binary

    def build_command(self, video_path: Path, output: Path) -> list:
        return [
            self.binary,
            "-i", str(video_path),
            "-vn",                          # No video
            "-acodec", "pcm_s16le",         # 16-bit PCM
            "-ar", str(self.sample_rate),   # Sample rate
            "-ac", str(self.channels),      # Mono
            "-loglevel", "error",           # Suppress verbose output
            "-y",                           # Overwrite
            str(output)
        ]

    def extract(self, video_path: Path, timeout: Optional[float] = None) -> Path:
        """
        Extract audio from a video file.

        Args:
            video_path: Path to the input video file.
            timeout: Seconds before FFmpeg is abandoned (defaults to the
                extractor's timeout).

        Returns:
            Path to the extracted temporary WAV file.

        Raises:
            AudioExtractionError: If FFmpeg fails, is missing, or times out.
        """
        video_path = Path(video_path)
        timeout = self.timeout if timeout is None else timeout

        fd, tmp_name = tempfile.mkstemp(suffix=".wav", prefix="autocap_")
        os.close(fd)
        output = Path(tmp_name)

        cmd = self.build_command(video_path, output)

        logger.info(f"Extracting audio: {video_path.name} → {output.name}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            self.cleanup(output)
            raise AudioExtractionError(
                f"FFmpeg audio extraction timed out after {timeout:.0f}s",
                reason="timeout",
            ) from e
        except FileNotFoundError as e:
            self.cleanup(output)
            raise AudioExtractionError(
                f"FFmpeg not found: {self.binary}", reason="missing"
            ) from e

        if result.returncode != 0:
            self.cleanup(output)
            tail = "\n".join((result.stderr or "").splitlines()[-20:])
            raise AudioExtractionError(
                f"FFmpeg audio extraction failed:\n{tail}", reason="status"
            )

        file_size_mb = output.stat().st_size / (1024 * 1024)
        logger.info(f"Audio extracted: {file_size_mb:.1f} MB ({output})")

        return output

    @staticmethod
    def cleanup(audio_path: Path):
        """Remove the temporary audio file."""
        audio_path = Path(audio_path)
        if audio_path.exists():
            audio_path.unlink()
            logger.debug(f"Cleaned up temp audio: {audio_path}")
