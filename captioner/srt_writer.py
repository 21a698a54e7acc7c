"""
SRT Writer — Standard SubRip subtitle document generator.

Converts Segment objects into a SubRip document with dense sequential
indices, HH:MM:SS,mmm timestamps, and UTF-8 encoding.
"""

import os
import logging
from pathlib import Path
from typing import Iterable, List

from .timecode import seconds_to_timecode

logger = logging.getLogger(__name__)


def to_subtitle_document(segments: Iterable) -> str:
    """
    Serialize ordered segments into an SRT document.

    Blank-text segments are skipped and do not consume an index.

    Args:
        segments: Ordered Segment objects.

    Returns:
        The complete document as a single string.
    """
    blocks: List[str] = []
    index = 0

    for seg in segments:
        text = (seg.text or "").strip()
        if not text:
            continue
        index += 1
        blocks.append(
            f"{index}\n"
            f"{seconds_to_timecode(seg.start)} --> {seconds_to_timecode(seg.end)}\n"
            f"{text}\n"
            f"\n"
        )

    return "".join(blocks)


class SRTWriter:
    """
    Writes segments to a standard SRT (SubRip) file.

    SRT format:
        1
        00:00:00,200 --> 00:00:02,200
        Hi! This is an auto-subtitles demo.

        2
        00:00:02,200 --> 00:00:04,800
        Subtitles are synced with playback.
    """

    def write(self, segments: Iterable, output_path: Path) -> Path:
        """
        Write segments to an SRT file.

        The document goes to a temporary sibling first and is renamed into
        place, so readers never see a half-written file.

        Args:
            segments: Ordered Segment objects.
            output_path: Path for the output .srt file.

        Returns:
            The output path.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        segments = list(segments)
        document = to_subtitle_document(segments)

        tmp = output_path.with_suffix(output_path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8", newline="\n") as f:
            f.write(document)
        os.replace(tmp, output_path)

        logger.info(
            f"SRT written: {document.count(' --> ')} subtitles → {output_path}"
        )
        return output_path

    def write_preview(self, segments: Iterable, max_entries: int = 10) -> str:
        """
        Generate a text preview of the segments.

        Args:
            segments: Segment objects.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        segments = list(segments)
        lines = []
        shown = min(len(segments), max_entries)

        for seg in segments[:shown]:
            ts_start = seconds_to_timecode(seg.start)
            ts_end = seconds_to_timecode(seg.end)
            text_preview = seg.text[:80]
            if len(seg.text) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(segments) > shown:
            lines.append(f"  ... and {len(segments) - shown} more entries")

        return "\n".join(lines)
