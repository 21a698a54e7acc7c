"""
Caption Session — Owns the current segments, the synchronizer and the
last published artifact for one interactive session.

Generation is last-started-wins: starting a job bumps a generation token,
and a finished job is applied only if its token is still current. Results
of superseded jobs are deleted and never exposed.
"""

import shutil
import logging
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Tuple

from .orchestrator import CaptionPipeline, PipelineResult, StatusSink
from .segments import Segment
from .style import StyleConfig
from .synchronizer import PlaybackSynchronizer

logger = logging.getLogger(__name__)


class CaptionSession:

    def __init__(
        self,
        pipeline: CaptionPipeline,
        synchronizer: PlaybackSynchronizer,
        workdir: Optional[Path] = None,
    ):
        self.pipeline = pipeline
        self.synchronizer = synchronizer
        self._owns_workdir = workdir is None
        self.workdir = Path(workdir) if workdir else Path(tempfile.mkdtemp(prefix="autocap_session_"))
        self.workdir.mkdir(parents=True, exist_ok=True)

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="caption-job")
        self._lock = threading.Lock()
        self._generation = 0
        self._segments: Tuple[Segment, ...] = ()
        self._result: Optional[PipelineResult] = None

    # ── State ──

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return self._segments

    @property
    def result(self) -> Optional[PipelineResult]:
        """The last applied pipeline result, if any."""
        return self._result

    @property
    def artifact(self) -> Optional[Path]:
        return self._result.output_path if self._result else None

    # ── Operations ──

    def generate(
        self,
        video_path: Path,
        style: Optional[StyleConfig] = None,
        burn: bool = True,
        sink: Optional[StatusSink] = None,
    ) -> Future:
        """
        Start a new captioning job, superseding any job still running.

        The synchronizer is stopped at once. The returned future resolves to
        the PipelineResult if the job was applied, or None if a newer job
        started in the meantime; pipeline errors propagate through it.
        """
        with self._lock:
            self.synchronizer.stop()
            self._generation += 1
            generation = self._generation

        logger.info(f"Generation {generation} queued for {Path(video_path).name}")
        return self._executor.submit(self._job, generation, Path(video_path), style, burn, sink)

    def clear(self):
        """Drop the current segments and clear the caption on screen."""
        with self._lock:
            self._generation += 1
            self._segments = ()
            self.synchronizer.clear()
        logger.info("Session cleared")

    def close(self):
        """Stop playback tracking, wait for the worker, remove temp files."""
        self.synchronizer.stop()
        self._executor.shutdown(wait=True)
        if self._owns_workdir:
            shutil.rmtree(self.workdir, ignore_errors=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── Worker ──

    def _paths(self, generation: int, video_path: Path, burn: bool):
        base = self.workdir / f"{video_path.stem}.gen{generation}"
        if burn:
            return base.with_name(base.name + ".captioned.mp4"), base.with_name(base.name + ".srt")
        return None, base.with_name(base.name + ".srt")

    def _job(self, generation: int, video_path: Path, style, burn: bool,
             sink) -> Optional[PipelineResult]:
        if not self._is_current(generation):
            logger.info(f"Generation {generation} superseded before it started")
            return None

        output_path, srt_path = self._paths(generation, video_path, burn)
        result = self.pipeline.process(
            video_path, output_path, style=style, srt_path=srt_path, burn=burn, sink=sink,
        )

        with self._lock:
            if generation != self._generation:
                logger.info(f"Generation {generation} superseded; discarding its output")
                _remove_result(result)
                return None
            previous = self._result
            self._result = result
            self._segments = result.segments
            self.synchronizer.start(result.segments)

        if previous is not None:
            _remove_result(previous)
        return result

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation


def _remove_result(result: PipelineResult):
    for path in (result.output_path, result.srt_path):
        if path is not None and Path(path).exists():
            Path(path).unlink()
            logger.debug(f"Removed {path}")
