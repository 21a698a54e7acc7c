"""
Pipeline Orchestrator — Coordinates the whole captioning job.

Stages:
  1. Audio Extraction (FFmpeg)
  2. Recognition (demo / Faster-Whisper / OpenAI)
  3. Normalize + serialize subtitles
  4. Burn-in with primary → fallback codec profiles
  5. Publish the captioned video and its SRT

Every stage fails fast into a typed CaptionError. The only retry is the
designed fallback encode.
"""

import os
import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .audio_extractor import AudioExtractor
from .encoder import (
    Attempt,
    BurnInEncoder,
    CodecProfile,
    EncodeOutcome,
    FALLBACK_PROFILE,
    PRIMARY_PROFILE,
    describe_attempts,
    partial_path,
)
from .errors import CaptionError, EncodeError
from .recognition import Recognizer, RecognitionRequest, create_recognizer
from .segments import Segment, normalize
from .srt_writer import SRTWriter
from .style import StyleConfig

logger = logging.getLogger(__name__)

class StatusSink:
    """
    Advisory receiver for status text and progress.

    Stage messages are already logged by the pipeline, so the default
    implementation only logs warnings; the CLI subclasses it to draw a
    progress bar.
    """

    def status(self, message: str, warning: bool = False):
        if warning:
            logger.warning(message)

    def progress(self, percent: int):
        pass


@dataclass
class EncodeJob:
    """One burn-in request."""
    source_media: Path
    segments: Tuple[Segment, ...]
    style: StyleConfig
    attempt: Attempt = Attempt.PRIMARY


@dataclass
class PipelineResult:
    segments: Tuple[Segment, ...]
    srt_path: Optional[Path]
    output_path: Optional[Path]
    outcome: Optional[EncodeOutcome] = None


def default_output_path(video_path: Path) -> Path:
    video_path = Path(video_path)
    return video_path.with_name(f"{video_path.stem}.captioned.mp4")


class CaptionPipeline:
    """
    Main pipeline orchestrator.

    Usage:
        config = load_config()
        pipeline = CaptionPipeline(config)
        pipeline.process("video.mp4", "video.captioned.mp4", style)
    """

    def __init__(
        self,
        config,
        recognizer: Optional[Recognizer] = None,
        extractor: Optional[AudioExtractor] = None,
        encoder: Optional[BurnInEncoder] = None,
    ):
        self.config = config
        ffmpeg = config.encode.ffmpeg

        self.extractor = extractor or AudioExtractor(
            sample_rate=config.audio.sample_rate,
            channels=config.audio.channels,
            timeout=config.audio.timeout,
            binary=ffmpeg,
        )
        self.recognizer = recognizer or create_recognizer(config.recognition)
        self.encoder = encoder or BurnInEncoder(
            primary=_profile(config.encode, "primary", PRIMARY_PROFILE),
            fallback=_profile(config.encode, "fallback", FALLBACK_PROFILE),
            timeout=config.encode.timeout,
            binary=ffmpeg,
        )
        self.writer = SRTWriter()

    def process(
        self,
        video_path: Path,
        output_path: Optional[Path] = None,
        style: Optional[StyleConfig] = None,
        srt_path: Optional[Path] = None,
        burn: bool = True,
        sink: Optional[StatusSink] = None,
    ) -> PipelineResult:
        """
        Run the full captioning pipeline.

        Args:
            video_path: Input video file.
            output_path: Where the captioned video goes (burn only).
            style: Caption style snapshot for the burn-in.
            srt_path: Where the SRT document goes; defaults to the output
                path (or the video path when not burning) with .srt suffix.
            burn: If False, stop after writing the SRT.
            sink: Status/progress receiver.

        Returns:
            PipelineResult with the segments and published paths.

        Raises:
            FileNotFoundError: If the video does not exist.
            CaptionError: On any terminal stage failure.
        """
        video_path = Path(video_path)
        sink = sink or StatusSink()
        style = style or StyleConfig()

        if not video_path.is_file():
            raise FileNotFoundError(f"Video file not found: {video_path}")

        if burn:
            output_path = Path(output_path) if output_path else default_output_path(video_path)
            srt_path = Path(srt_path) if srt_path else output_path.with_suffix(".srt")
        else:
            output_path = None
            srt_path = Path(srt_path) if srt_path else video_path.with_suffix(".srt")

        start_time = time.monotonic()
        rec = self.config.recognition

        logger.info(f"{'='*60}")
        logger.info("Auto Captioner")
        logger.info(f"Input:  {video_path}")
        logger.info(f"Output: {output_path or '(no burn-in)'}")
        logger.info(f"SRT:    {srt_path}")
        logger.info(f"Engine: {self.recognizer.name} (lang={rec.language}, model={rec.model or 'default'})")
        logger.info(f"{'='*60}")

        size = video_path.stat().st_size
        threshold = self.config.playback.large_file_warning_mb * 1024 * 1024
        if size > threshold:
            sink.status(
                f"File is large ({size / (1024 * 1024):.0f} MB); "
                f"processing may be slow.",
                warning=True,
            )

        try:
            return self._run(video_path, output_path, srt_path, style, burn, sink, start_time)
        except CaptionError as e:
            sink.status(f"Failed: {e}", warning=True)
            raise

    def _run(self, video_path, output_path, srt_path, style, burn, sink, start_time):
        rec = self.config.recognition
        audio_path = None
        srt_partial = None

        try:
            # ── Stage 1: Audio Extraction ──
            self._report(sink, "Extracting audio from video...", 5)
            audio_path = self.extractor.extract(video_path)

            # ── Stage 2: Recognition ──
            self._report(sink, "Recognizing speech...", 20)
            request = RecognitionRequest(audio_path, language=rec.language, model=rec.model)
            raw = self.recognizer.recognize(request, timeout=rec.timeout)

            # ── Stage 3: Normalize + serialize ──
            self._report(sink, "Building subtitles...", 60)
            segments = normalize(raw)
            logger.info(f"Segments: {len(segments)} after normalization")

            if not burn:
                self.writer.write(segments, srt_path)
                return self._finish(sink, segments, srt_path, None, None, start_time)

            # FFmpeg reads the SRT from its partial path; it is renamed
            # into place only once the video has been published
            srt_partial = partial_path(srt_path)
            self.writer.write(segments, srt_partial)

            # ── Stage 4: Burn-in ──
            job = EncodeJob(video_path, segments, style)
            outcome = self._burn(job, srt_partial, output_path, sink)

            # ── Stage 5: Publish SRT ──
            self._publish_srt(srt_partial, srt_path, output_path)
            return self._finish(sink, segments, srt_path, output_path, outcome, start_time)

        finally:
            if audio_path is not None:
                self.extractor.cleanup(audio_path)
            if srt_partial is not None and srt_partial.exists():
                srt_partial.unlink()

    @staticmethod
    def _publish_srt(srt_partial: Path, srt_path: Path, output_path: Path):
        """Rename the SRT into place; on failure withdraw the video too."""
        try:
            os.replace(srt_partial, srt_path)
        except OSError:
            if output_path.exists():
                output_path.unlink()
                logger.warning(f"Removed {output_path}: its SRT could not be published")
            raise
        logger.info(f"Subtitles published: {srt_path}")

    def _burn(self, job: EncodeJob, srt: Path, output_path: Path,
              sink: StatusSink) -> EncodeOutcome:
        def on_attempt(attempt: Attempt, profile: CodecProfile):
            job.attempt = attempt
            if attempt is Attempt.PRIMARY:
                self._report(sink, f"Encoding video ({profile.video_codec})...", 70)
            else:
                sink.status(
                    f"Primary codec failed, retrying with {profile.video_codec}...",
                    warning=True,
                )
                self._report(sink, f"Encoding video ({profile.video_codec})...", 80)

        outcome = self.encoder.burn(
            job.source_media, srt, output_path, job.style, on_attempt=on_attempt,
        )
        if not outcome.ok:
            raise EncodeError(
                f"Video encoding failed with both codec profiles "
                f"({describe_attempts(outcome.attempts)})",
                attempts=outcome.attempts,
            )
        return outcome

    def _finish(self, sink, segments, srt_path, output_path, outcome, start_time):
        elapsed = time.monotonic() - start_time
        self._report(sink, f"Done! ({elapsed:.1f}s)", 100)

        logger.info(f"{'='*60}")
        logger.info(f"Pipeline complete in {elapsed:.1f}s")
        logger.info(f"  Subtitles: {len(segments)} entries")
        if outcome is not None:
            logger.info(f"  Encode:    {outcome.status.value}")
        logger.info(f"  SRT:       {srt_path}")
        if output_path is not None:
            logger.info(f"  Video:     {output_path}")
        logger.info(f"{'='*60}")

        preview = self.writer.write_preview(segments, max_entries=5)
        if preview:
            logger.info(f"Preview:\n{preview}")

        return PipelineResult(segments, srt_path, output_path, outcome)

    # ── Utilities ──

    @staticmethod
    def _report(sink: StatusSink, msg: str, pct: int):
        """Report progress to logger and the status sink."""
        pct = max(0, min(100, int(pct)))
        logger.info(f"[{pct:3d}%] {msg}")
        sink.status(msg)
        sink.progress(pct)


def _profile(encode_config, name: str, default: CodecProfile) -> CodecProfile:
    build = getattr(encode_config, "profile", None)
    return build(name) if build else default
