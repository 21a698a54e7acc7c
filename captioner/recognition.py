"""
Recognition — Speech-to-text backends returning timed segments.

Every backend takes the same request (audio file, language, model name)
and returns raw {start, end, text} segments. An empty result is a hard
failure, as is any transport, status or timeout problem.

Backends:
  - demo:    canned phrases for pipeline testing without a model
  - whisper: local Faster-Whisper (CTranslate2, INT8 on CPU)
  - openai:  remote OpenAI audio transcription API over HTTP
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .errors import RecognitionError

logger = logging.getLogger(__name__)

LANGUAGES = ("ru", "en")

RawSegment = Dict[str, Any]


@dataclass(frozen=True)
class RecognitionRequest:
    """What a backend needs to transcribe one audio artifact."""
    audio_path: Path
    language: str = "ru"
    model: Optional[str] = None

    def __post_init__(self):
        if self.language not in LANGUAGES:
            raise ValueError(
                f"Unsupported language '{self.language}' "
                f"(expected one of: {', '.join(LANGUAGES)})"
            )


class Recognizer:
    """Base backend interface for transcription engines."""

    name = "base"

    def recognize(
        self,
        request: RecognitionRequest,
        timeout: Optional[float] = None,
    ) -> List[RawSegment]:
        """
        Transcribe the request's audio.

        Returns:
            Non-empty list of raw segments.

        Raises:
            RecognitionError: On backend failure, timeout, or empty result.
        """
        segments = self._transcribe(request, timeout)
        if not segments:
            raise RecognitionError(
                f"{self.name}: recognition returned no segments",
                reason=RecognitionError.EMPTY,
            )
        logger.info(f"{self.name}: recognized {len(segments)} segments")
        return segments

    def _transcribe(self, request: RecognitionRequest,
                    timeout: Optional[float]) -> List[RawSegment]:
        raise NotImplementedError


# ── Demo ────────────────────────────────────────────────────────

DEMO_SEGMENTS: Dict[str, List[RawSegment]] = {
    "en": [
        {"start": 0.20, "end": 2.20, "text": "Hi! This is an auto-subtitles demo."},
        {"start": 2.20, "end": 4.80, "text": "Subtitles are synced with the playback clock."},
        {"start": 4.80, "end": 7.20, "text": "Try animations, font size, and Y position."},
    ],
    "ru": [
        {"start": 0.20, "end": 2.40, "text": "Привет! Это демо авто-субтитров."},
        {"start": 2.40, "end": 5.00, "text": "Синхронизация идёт по времени воспроизведения."},
        {"start": 5.00, "end": 7.60, "text": "Проверь анимации, размер и позицию Y."},
    ],
}


class DemoRecognizer(Recognizer):
    """Returns a fixed set of phrases; the audio is not inspected."""

    name = "demo"

    def _transcribe(self, request, timeout):
        return [dict(s) for s in DEMO_SEGMENTS[request.language]]


# ── Faster-Whisper ──────────────────────────────────────────────

class WhisperRecognizer(Recognizer):
    """
    Automatic Speech Recognition using Faster-Whisper.

    The model is lazily loaded on first use. Transcription runs on a
    worker thread so a caller-supplied timeout can bound the wait.
    """

    name = "whisper"

    def __init__(self, config):
        self.model_size = getattr(config, "whisper_model", "small")
        self.compute_type = getattr(config, "compute_type", "int8")
        self.beam_size = getattr(config, "beam_size", 3)
        self.vad_filter = getattr(config, "vad_filter", True)

        # Thread count: 0 = auto-detect
        raw_threads = getattr(config, "threads", 0)
        if raw_threads <= 0:
            self.cpu_threads = os.cpu_count() or 4
        else:
            self.cpu_threads = raw_threads

        # Lazy-loaded, keyed by model size
        self._model = None
        self._loaded_size = None

    def _load_model(self, model_size: str):
        """Load the Faster-Whisper model on first use."""
        if self._model is not None and self._loaded_size == model_size:
            return

        from faster_whisper import WhisperModel

        logger.info(
            f"Loading Faster-Whisper model '{model_size}' "
            f"(compute_type={self.compute_type}, threads={self.cpu_threads})"
        )

        self._model = WhisperModel(
            model_size,
            device="cpu",
            compute_type=self.compute_type,
            cpu_threads=self.cpu_threads
        )
        self._loaded_size = model_size

        logger.info("Faster-Whisper model loaded successfully.")

    def _run(self, request: RecognitionRequest) -> List[RawSegment]:
        self._load_model(request.model or self.model_size)

        segments_iter, info = self._model.transcribe(
            str(request.audio_path),
            language=request.language,
            beam_size=self.beam_size,
            vad_filter=self.vad_filter,
        )

        results = []
        for seg in segments_iter:
            results.append({"start": seg.start, "end": seg.end, "text": seg.text})

        logger.debug(
            f"Whisper language={info.language} "
            f"(probability: {info.language_probability:.2f})"
        )
        return results

    def _transcribe(self, request, timeout):
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="whisper")
        future = executor.submit(self._run, request)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout as e:
            raise RecognitionError(
                f"whisper: transcription timed out after {timeout:.0f}s",
                reason=RecognitionError.TIMEOUT,
            ) from e
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(
                f"whisper: transcription failed: {e}",
                reason=RecognitionError.STATUS,
            ) from e
        finally:
            # Don't wait for a timed-out transcription to finish
            executor.shutdown(wait=False)


# ── OpenAI API ──────────────────────────────────────────────────

class OpenAIRecognizer(Recognizer):
    """
    Remote transcription via the OpenAI audio API.

    Requests verbose_json output, which carries segment-level timestamps.
    The API key is read from the environment and never logged.
    """

    name = "openai"

    def __init__(
        self,
        config,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = getattr(config, "api_base", "https://api.openai.com/v1").rstrip("/")
        self.model = getattr(config, "openai_model", "whisper-1")
        self._api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "").strip()
        self._client = client

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise RecognitionError(
                "openai: API key not configured. Set OPENAI_API_KEY "
                "(or add it to a .env file).",
                reason=RecognitionError.STATUS,
            )
        return {"Authorization": f"Bearer {self._api_key}"}

    def _post(self, client: httpx.Client, request: RecognitionRequest,
              timeout: Optional[float]) -> httpx.Response:
        audio_path = Path(request.audio_path)
        data = {
            "model": request.model or self.model,
            "language": request.language,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
        }
        with open(audio_path, "rb") as f:
            return client.post(
                f"{self.base_url}/audio/transcriptions",
                headers=self._headers(),
                data=data,
                files={"file": (audio_path.name, f, "audio/wav")},
                timeout=timeout,
            )

    def _transcribe(self, request, timeout):
        logger.info(f"openai: uploading {Path(request.audio_path).name} "
                    f"(model={request.model or self.model}, lang={request.language})")
        try:
            if self._client is not None:
                resp = self._post(self._client, request, timeout)
            else:
                with httpx.Client() as client:
                    resp = self._post(client, request, timeout)
        except httpx.TimeoutException as e:
            raise RecognitionError(
                f"openai: request timed out after {timeout}s",
                reason=RecognitionError.TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise RecognitionError(
                f"openai: transport error: {e}",
                reason=RecognitionError.TRANSPORT,
            ) from e

        if resp.status_code != 200:
            raise RecognitionError(
                f"openai: API error {resp.status_code}: {resp.text[:200]}",
                reason=RecognitionError.STATUS,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise RecognitionError(
                "openai: response is not valid JSON",
                reason=RecognitionError.STATUS,
            ) from e

        segments = payload.get("segments") if isinstance(payload, dict) else None
        if segments is None:
            return []
        if not isinstance(segments, list) or not all(isinstance(s, dict) for s in segments):
            raise RecognitionError(
                "openai: malformed response, 'segments' is not a list of objects",
                reason=RecognitionError.STATUS,
            )
        return [
            {"start": s.get("start"), "end": s.get("end"), "text": s.get("text", "")}
            for s in segments
        ]


# ── Factory ─────────────────────────────────────────────────────

ENGINES = ("demo", "whisper", "openai")


def create_recognizer(config) -> Recognizer:
    """
    Build the backend named by config.engine.

    Raises:
        ValueError: If the engine name is unknown.
    """
    engine = getattr(config, "engine", "demo")
    if engine == "demo":
        return DemoRecognizer()
    if engine == "whisper":
        return WhisperRecognizer(config)
    if engine == "openai":
        return OpenAIRecognizer(config)
    raise ValueError(f"Unknown recognition engine '{engine}' (expected one of: {', '.join(ENGINES)})")
