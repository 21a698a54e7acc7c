"""
Caption Style — Immutable style snapshot for preview and burn-in.

The same StyleConfig drives the live preview and the FFmpeg subtitles
filter, where it is rendered as an ASS force_style string.
"""

import enum
import math
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Bottom-center in ASS numpad alignment
ASS_ALIGNMENT_BOTTOM_CENTER = 2

# MarginV pixels per percent of distance from the bottom edge
MARGIN_V_PER_PERCENT = 6


class AnimationKind(enum.Enum):
    FADE = "fade"
    BOUNCE = "bounce"
    SCALE = "scale"
    TYPEWRITER = "typewriter"

    @classmethod
    def parse(cls, value) -> "AnimationKind":
        """Map a user-supplied name to a kind; unknown names become FADE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown animation '{value}', using '{cls.FADE.value}'")
            return cls.FADE


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def clamp_percent(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        return 100.0
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class StyleConfig:
    """Snapshot of caption appearance settings."""
    font_size_px: int = 28
    vertical_position_percent: float = 90.0
    font_family: str = "Arial"
    animation: AnimationKind = AnimationKind.FADE

    @classmethod
    def create(
        cls,
        font_size_px=28,
        vertical_position_percent=90.0,
        font_family="Arial",
        animation="fade",
    ) -> "StyleConfig":
        """
        Build a style from raw user input.

        The vertical position is clamped to [0, 100] and unknown animation
        names fall back to fade.

        Raises:
            ValueError: If font_size_px is not a positive integer.
        """
        size = int(font_size_px)
        if size <= 0:
            raise ValueError(f"Font size must be a positive integer, got {font_size_px!r}")

        return cls(
            font_size_px=size,
            vertical_position_percent=clamp_percent(vertical_position_percent),
            font_family=str(font_family),
            animation=AnimationKind.parse(animation),
        )

    @property
    def margin_v(self) -> int:
        """Vertical margin for burn-in: 100% sits on the bottom edge."""
        return _round_half_up((100 - self.vertical_position_percent) * MARGIN_V_PER_PERCENT)

    def force_style(self) -> str:
        """Render the style as an ASS force_style value for FFmpeg."""
        parts = [
            f"FontName={self.font_family}",
            f"FontSize={self.font_size_px}",
            "PrimaryColour=&H00FFFFFF",
            "OutlineColour=&H00000000",
            "BorderStyle=1",
            "Outline=2",
            "Shadow=0",
            f"Alignment={ASS_ALIGNMENT_BOTTOM_CENTER}",
            f"MarginV={self.margin_v}",
        ]
        return ",".join(parts)
