"""
Tests for the pipeline orchestrator.
"""

import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from config import AppConfig
from captioner.encoder import Attempt, BurnInEncoder, EncodeStatus
from captioner.errors import AudioExtractionError, EncodeError, InvalidSegment, RecognitionError
from captioner.orchestrator import (
    CaptionPipeline,
    StatusSink,
    default_output_path,
)
from captioner.recognition import DemoRecognizer, Recognizer
from captioner.style import StyleConfig


class RecordingSink(StatusSink):

    def __init__(self):
        self.messages = []
        self.warnings = []
        self.percents = []

    def status(self, message, warning=False):
        (self.warnings if warning else self.messages).append(message)

    def progress(self, percent):
        self.percents.append(percent)


class FakeExtractor:
    """Writes a tiny WAV into a scratch dir instead of calling FFmpeg."""

    def __init__(self, workdir: Path, error=None):
        self.workdir = workdir
        self.error = error
        self.extracted = []
        self.cleaned = []

    def extract(self, video_path, timeout=None):
        if self.error:
            raise self.error
        path = self.workdir / f"audio{len(self.extracted)}.wav"
        path.write_bytes(b"RIFF")
        self.extracted.append(path)
        return path

    def cleanup(self, audio_path):
        self.cleaned.append(audio_path)
        Path(audio_path).unlink()


class StaticRecognizer(Recognizer):
    name = "static"

    def __init__(self, segments):
        self.segments = segments
        self.requests = []

    def _transcribe(self, request, timeout):
        self.requests.append((request, timeout))
        return list(self.segments)


class FakeFFmpeg:

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.codecs = []
        self.subtitles = []

    def __call__(self, cmd, **kwargs):
        codec = cmd[cmd.index("-c:v") + 1]
        self.codecs.append(codec)
        vf = cmd[cmd.index("-vf") + 1]
        srt = vf[len("subtitles="):vf.index(":force_style")].replace("\\", "")
        self.subtitles.append(Path(srt).read_text(encoding="utf-8"))
        if codec in self.failing:
            return subprocess.CompletedProcess(cmd, 1, "", "encoder missing")
        Path(cmd[-1]).write_bytes(b"video")
        return subprocess.CompletedProcess(cmd, 0, "", "")


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00" * 1024)
    return path


@pytest.fixture
def config():
    cfg = AppConfig()
    cfg.recognition.language = "en"
    return cfg


@pytest.fixture
def scratch(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


def _pipeline(config, scratch, recognizer=None, extractor=None):
    return CaptionPipeline(
        config,
        recognizer=recognizer or DemoRecognizer(),
        extractor=extractor or FakeExtractor(scratch),
        encoder=BurnInEncoder(timeout=5.0),
    )


class TestBurnRun:

    def test_publishes_video_and_srt(self, config, scratch, video):
        ffmpeg = FakeFFmpeg()
        sink = RecordingSink()
        pipeline = _pipeline(config, scratch)

        with patch("captioner.encoder.subprocess.run", side_effect=ffmpeg):
            result = pipeline.process(video, sink=sink)

        assert result.output_path == default_output_path(video)
        assert result.output_path.read_bytes() == b"video"
        assert result.srt_path == result.output_path.with_suffix(".srt")
        assert result.outcome.status is EncodeStatus.PRIMARY_SUCCESS
        assert len(result.segments) == 3

        srt = result.srt_path.read_text(encoding="utf-8")
        assert srt.startswith("1\n00:00:00,200 --> 00:00:02,200\nHi! This is an auto-subtitles demo.\n\n")
        assert ffmpeg.subtitles == [srt]

        assert sink.percents[-1] == 100
        assert sink.percents == sorted(sink.percents)
        assert sink.warnings == []

    def test_fallback_after_primary_failure(self, config, scratch, video):
        ffmpeg = FakeFFmpeg(failing={"libx264"})
        sink = RecordingSink()

        with patch("captioner.encoder.subprocess.run", side_effect=ffmpeg):
            result = _pipeline(config, scratch).process(video, sink=sink)

        assert ffmpeg.codecs == ["libx264", "mpeg4"]
        assert result.outcome.used_fallback
        assert any("mpeg4" in w for w in sink.warnings)

    def test_both_encodes_fail(self, config, scratch, video):
        ffmpeg = FakeFFmpeg(failing={"libx264", "mpeg4"})
        sink = RecordingSink()
        output = video.with_name("out.mp4")

        with patch("captioner.encoder.subprocess.run", side_effect=ffmpeg):
            with pytest.raises(EncodeError) as exc:
                _pipeline(config, scratch).process(video, output, sink=sink)

        assert ffmpeg.codecs == ["libx264", "mpeg4"]
        assert len(exc.value.attempts) == 2
        assert not output.exists()
        assert not output.with_suffix(".srt").exists()
        assert list(video.parent.glob("*.partial*")) == []
        assert sink.warnings and "Failed" in sink.warnings[-1]
        assert 100 not in sink.percents

    def test_style_reaches_filter(self, config, scratch, video):
        seen = []

        def fake(cmd, **kwargs):
            seen.append(cmd[cmd.index("-vf") + 1])
            Path(cmd[-1]).write_bytes(b"video")
            return subprocess.CompletedProcess(cmd, 0, "", "")

        style = StyleConfig.create(font_size_px=40, vertical_position_percent=50, font_family="Verdana")
        with patch("captioner.encoder.subprocess.run", side_effect=fake):
            _pipeline(config, scratch).process(video, style=style)

        assert r"FontName=Verdana\,FontSize=40" in seen[0]
        assert "MarginV=300" in seen[0]

    def test_temp_files_cleaned(self, config, scratch, video):
        extractor = FakeExtractor(scratch)
        pipeline = _pipeline(config, scratch, extractor=extractor)
        with patch("captioner.encoder.subprocess.run", side_effect=FakeFFmpeg(failing={"libx264", "mpeg4"})):
            with pytest.raises(EncodeError):
                pipeline.process(video)
        assert extractor.cleaned == extractor.extracted
        assert list(scratch.iterdir()) == []


class TestSrtOnlyRun:

    def test_no_burn_writes_srt_only(self, config, scratch, video):
        with patch("captioner.encoder.subprocess.run") as run:
            result = _pipeline(config, scratch).process(video, burn=False)
        run.assert_not_called()
        assert result.output_path is None
        assert result.outcome is None
        assert result.srt_path == video.with_suffix(".srt")
        assert result.srt_path.exists()

    def test_request_uses_configured_language_and_model(self, config, scratch, video):
        config.recognition.model = "base"
        config.recognition.timeout = 42.0
        recognizer = StaticRecognizer([{"start": 0, "end": 1, "text": "x"}])
        _pipeline(config, scratch, recognizer=recognizer).process(video, burn=False)
        request, timeout = recognizer.requests[0]
        assert request.language == "en"
        assert request.model == "base"
        assert timeout == 42.0


class TestFailures:

    def test_missing_video(self, config, scratch, tmp_path):
        extractor = FakeExtractor(scratch)
        with pytest.raises(FileNotFoundError):
            _pipeline(config, scratch, extractor=extractor).process(tmp_path / "nope.mp4")
        assert extractor.extracted == []

    def test_extraction_error_propagates(self, config, scratch, video):
        extractor = FakeExtractor(scratch, error=AudioExtractionError("boom", reason="status"))
        sink = RecordingSink()
        with pytest.raises(AudioExtractionError):
            _pipeline(config, scratch, extractor=extractor).process(video, sink=sink)
        assert sink.warnings == ["Failed: boom"]

    def test_empty_recognition(self, config, scratch, video):
        with pytest.raises(RecognitionError) as exc:
            _pipeline(config, scratch, recognizer=StaticRecognizer([])).process(video)
        assert exc.value.reason == RecognitionError.EMPTY

    def test_invalid_segment_leaves_no_output(self, config, scratch, video):
        recognizer = StaticRecognizer([{"start": 3, "end": 1, "text": "bad"}])
        with patch("captioner.encoder.subprocess.run") as run:
            with pytest.raises(InvalidSegment):
                _pipeline(config, scratch, recognizer=recognizer).process(video)
        run.assert_not_called()
        assert not default_output_path(video).exists()
        assert not default_output_path(video).with_suffix(".srt").exists()

    def test_large_file_is_only_a_warning(self, config, scratch, video):
        config.playback.large_file_warning_mb = 0.0005
        sink = RecordingSink()

        result = _pipeline(config, scratch).process(video, burn=False, sink=sink)

        assert result.srt_path.exists()
        assert any("large" in w for w in sink.warnings)

    def test_configured_threshold_not_exceeded(self, config, scratch, video):
        config.playback.large_file_warning_mb = 1
        sink = RecordingSink()
        _pipeline(config, scratch).process(video, burn=False, sink=sink)
        assert sink.warnings == []


class TestSrtPublishing:

    def test_srt_write_failure_skips_encoding(self, config, scratch, video):
        with patch("captioner.orchestrator.SRTWriter.write", side_effect=OSError("disk full")):
            with patch("captioner.encoder.subprocess.run") as run:
                with pytest.raises(OSError):
                    _pipeline(config, scratch).process(video)
        run.assert_not_called()
        assert not default_output_path(video).exists()

    def test_srt_publish_failure_withdraws_video(self, config, scratch, video):
        srt_target = default_output_path(video).with_suffix(".srt")
        real_replace = os.replace

        def replace(src, dst):
            if Path(dst) == srt_target:
                raise OSError("read-only destination")
            return real_replace(src, dst)

        with patch("captioner.encoder.subprocess.run", side_effect=FakeFFmpeg()):
            with patch("captioner.orchestrator.os.replace", side_effect=replace):
                with pytest.raises(OSError):
                    _pipeline(config, scratch).process(video)

        assert not default_output_path(video).exists()
        assert not srt_target.exists()
        assert list(video.parent.glob("*.partial*")) == []

    def test_encoder_reads_the_published_document(self, config, scratch, video):
        ffmpeg = FakeFFmpeg()
        with patch("captioner.encoder.subprocess.run", side_effect=ffmpeg):
            result = _pipeline(config, scratch).process(video)
        assert ffmpeg.subtitles == [result.srt_path.read_text(encoding="utf-8")]
        assert list(video.parent.glob("*.partial*")) == []


class TestAttemptTracking:

    def test_job_attempt_follows_fallback(self, config, scratch, video):
        attempts = []
        pipeline = _pipeline(config, scratch)
        original = pipeline.encoder.burn

        def burn(source, srt, output, style, timeout=None, on_attempt=None):
            def hook(attempt, profile):
                on_attempt(attempt, profile)
                attempts.append(attempt)
            return original(source, srt, output, style, timeout, hook)

        pipeline.encoder.burn = burn
        with patch("captioner.encoder.subprocess.run", side_effect=FakeFFmpeg(failing={"libx264"})):
            pipeline.process(video)
        assert attempts == [Attempt.PRIMARY, Attempt.FALLBACK]
