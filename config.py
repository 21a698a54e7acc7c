"""
Configuration loader for the Auto Captioner.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

from captioner.encoder import CodecProfile
from captioner.style import StyleConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class AudioConfig:
    sample_rate: int = 16000
    channels: int = 1
    timeout: float = 120.0


@dataclass
class RecognitionConfig:
    engine: str = "demo"            # demo | whisper | openai
    language: str = "ru"            # ru | en
    model: Optional[str] = None     # overrides the engine's default model
    timeout: float = 300.0
    # faster-whisper
    whisper_model: str = "small"
    compute_type: str = "int8"
    beam_size: int = 3
    threads: int = 0  # 0 = auto-detect CPU cores
    vad_filter: bool = True
    # OpenAI API
    api_base: str = "https://api.openai.com/v1"
    openai_model: str = "whisper-1"


@dataclass
class ProfileConfig:
    video_codec: str = "libx264"
    video_args: List[str] = field(default_factory=list)
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    faststart: bool = True


def _default_primary() -> ProfileConfig:
    return ProfileConfig(
        video_codec="libx264",
        video_args=["-preset", "veryfast", "-crf", "23", "-pix_fmt", "yuv420p"],
    )


def _default_fallback() -> ProfileConfig:
    return ProfileConfig(video_codec="mpeg4", video_args=["-q:v", "3"])


@dataclass
class EncodeConfig:
    ffmpeg: str = "ffmpeg"
    timeout: float = 600.0
    primary: ProfileConfig = field(default_factory=_default_primary)
    fallback: ProfileConfig = field(default_factory=_default_fallback)

    def profile(self, name: str) -> CodecProfile:
        """Build the named ("primary" or "fallback") codec profile.

        Audio and container settings always come from the primary profile
        so both attempts produce the same kind of file.
        """
        video = getattr(self, name)
        return CodecProfile(
            name=name,
            video_codec=video.video_codec,
            video_args=tuple(str(a) for a in video.video_args),
            audio_codec=self.primary.audio_codec,
            audio_bitrate=self.primary.audio_bitrate,
            faststart=self.primary.faststart,
        )


@dataclass
class StyleDefaults:
    font_size: int = 28
    y_position: float = 90.0
    font_family: str = "Arial"
    animation: str = "fade"

    def snapshot(self) -> StyleConfig:
        return StyleConfig.create(
            font_size_px=self.font_size,
            vertical_position_percent=self.y_position,
            font_family=self.font_family,
            animation=self.animation,
        )


@dataclass
class PlaybackConfig:
    tick_interval: float = 1 / 30
    large_file_warning_mb: float = 120


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    encode: EncodeConfig = field(default_factory=EncodeConfig)
    style: StyleDefaults = field(default_factory=StyleDefaults)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "engine", None):
            self.recognition.engine = args.engine
        if getattr(args, "language", None):
            self.recognition.language = args.language
        if getattr(args, "model", None):
            self.recognition.model = args.model
        if getattr(args, "font_size", None) is not None:
            self.style.font_size = args.font_size
        if getattr(args, "y_pos", None) is not None:
            self.style.y_position = args.y_pos
        if getattr(args, "font_family", None):
            self.style.font_family = args.font_family
        if getattr(args, "anim", None):
            self.style.animation = args.anim


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    unknown = set(data) - field_names
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def _encode_from_dict(data: Optional[dict]) -> EncodeConfig:
    if data is None:
        return EncodeConfig()
    data = dict(data)
    primary = data.pop("primary", None)
    fallback = data.pop("fallback", None)
    encode = _dict_to_dataclass(EncodeConfig, data)
    if primary is not None:
        encode.primary = _dict_to_dataclass(ProfileConfig, primary)
    if fallback is not None:
        encode.fallback = _dict_to_dataclass(ProfileConfig, fallback)
    return encode


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig(
        audio=_dict_to_dataclass(AudioConfig, raw.get("audio")),
        recognition=_dict_to_dataclass(RecognitionConfig, raw.get("recognition")),
        encode=_encode_from_dict(raw.get("encode")),
        style=_dict_to_dataclass(StyleDefaults, raw.get("style")),
        playback=_dict_to_dataclass(PlaybackConfig, raw.get("playback")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
