"""
Auto Captioner — CLI Entry Point

Usage:
    python main.py video.mp4
    python main.py video.mp4 -o captioned.mp4 --engine whisper -l en
    python main.py video.mp4 --no-burn --preview
"""

import sys
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

from config import load_config
from captioner.audio_extractor import verify_ffmpeg
from captioner.errors import CaptionError, EncodeError
from captioner.orchestrator import CaptionPipeline, StatusSink
from captioner.player import TerminalPreview, play_video
from captioner.recognition import ENGINES, LANGUAGES
from captioner.style import AnimationKind


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("faster_whisper").setLevel(logging.INFO)


def print_banner():
    """Print the application banner."""
    banner = """
==========================================================
                   Auto Captioner

  Speech → timed subtitles → burned-in captioned video
  Demo  |  Faster-Whisper  |  OpenAI transcription
==========================================================
"""
    print(banner)


def print_progress(message: str, percent: int):
    """Console progress callback with progress bar."""
    bar_width = 30
    filled = int(bar_width * percent / 100)
    bar = "#" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {percent:3d}%  {message:<50}", end="", flush=True)
    if percent >= 100:
        print()  # Newline at completion


class ConsoleStatus(StatusSink):
    """Draws the progress bar; warnings go on their own line."""

    def __init__(self):
        self._message = ""

    def status(self, message: str, warning: bool = False):
        if warning:
            print(f"\n  [WARN] {message}")
        else:
            self._message = message

    def progress(self, percent: int):
        print_progress(self._message, percent)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Auto Captioner — Generate timed subtitles from speech "
                    "and burn them into the video.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py clip.mp4                          # Demo captions, burned in
  python main.py clip.mp4 -o out.mp4               # Custom output path
  python main.py clip.mp4 --engine whisper -l en   # Local Faster-Whisper
  python main.py clip.mp4 --engine openai          # OpenAI API (OPENAI_API_KEY)
  python main.py clip.mp4 --font-size 36 --y-pos 80 --anim bounce
  python main.py clip.mp4 --no-burn --preview      # SRT only + terminal preview
  python main.py clip.mp4 --play                   # Open the result in a player
        """
    )

    parser.add_argument(
        "video",
        type=Path,
        help="Path to the input video file (.mp4, .mkv, .webm, etc.)"
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output video path (default: <video>.captioned.mp4)"
    )
    parser.add_argument(
        "--srt",
        type=Path,
        default=None,
        help="Output SRT path (default: next to the output video)"
    )
    parser.add_argument(
        "--engine",
        default=None,
        choices=list(ENGINES),
        help="Recognition engine (default: from config.yaml, usually 'demo')"
    )
    parser.add_argument(
        "-l", "--language",
        default=None,
        choices=list(LANGUAGES),
        help="Speech language (default: from config.yaml)"
    )
    parser.add_argument(
        "-m", "--model",
        default=None,
        help="Model name for the engine, e.g. 'base' or 'whisper-1'"
    )
    parser.add_argument(
        "--font-size",
        type=int,
        default=None,
        help="Caption font size in pixels"
    )
    parser.add_argument(
        "--y-pos",
        type=float,
        default=None,
        help="Caption vertical position, 0 (top) to 100 (bottom)"
    )
    parser.add_argument(
        "--font-family",
        default=None,
        help="Caption font family"
    )
    parser.add_argument(
        "--anim",
        default=None,
        choices=[k.value for k in AnimationKind],
        help="Caption animation for the preview"
    )
    parser.add_argument(
        "--no-burn",
        action="store_true",
        help="Only write the SRT file; skip video encoding"
    )
    parser.add_argument(
        "--play",
        action="store_true",
        help="Open the result in a video player when done"
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Replay the captions in the terminal when done"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to custom config.yaml file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors"
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    load_dotenv()

    # ── Load config ──
    config = load_config(args.config)
    config.update_from_args(args)

    # ── Setup logging ──
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    burn = not args.no_burn

    try:
        style = config.style.snapshot()

        # ── Banner ──
        if not args.quiet:
            print_banner()
            print(f"  Input:    {args.video}")
            print(f"  Engine:   {config.recognition.engine}")
            print(f"  Language: {config.recognition.language}")
            print(f"  Style:    {style.font_family} {style.font_size_px}px, "
                  f"y={style.vertical_position_percent:g}%, {style.animation.value}")
            print(f"  Burn-in:  {'yes' if burn else 'no'}")
            print()

        # ── Check FFmpeg ──
        verify_ffmpeg(config.encode.ffmpeg)

        # ── Run pipeline ──
        pipeline = CaptionPipeline(config)
        sink = ConsoleStatus() if not args.quiet else StatusSink()
        result = pipeline.process(
            args.video, args.output, style=style, srt_path=args.srt, burn=burn, sink=sink,
        )

        if not args.quiet:
            print(f"\n  [OK] Subtitles saved to: {result.srt_path}")
            if result.output_path:
                note = " (fallback codec)" if result.outcome.used_fallback else ""
                print(f"  [OK] Captioned video: {result.output_path}{note}")
            print(f"  [INFO] Total entries: {len(result.segments)}")

        if args.preview:
            print(f"\n  [>] Caption preview (Ctrl+C to stop)\n")
            TerminalPreview(
                result.segments, style, tick_interval=config.playback.tick_interval,
            ).run()

        # ── Auto-play after generation ──
        if args.play:
            try:
                if result.output_path:
                    player_used = play_video(result.output_path)
                else:
                    player_used = play_video(args.video, result.srt_path)
                if not args.quiet:
                    print(f"  [PLAY] Launched with: {player_used}")
            except OSError as e:
                print(f"\n  [WARN] Could not launch player: {e}")

    except KeyboardInterrupt:
        print("\n\n  [WARN] Processing interrupted by user.")
        sys.exit(130)
    except FileNotFoundError as e:
        print(f"\n  [ERROR] File error: {e}")
        sys.exit(1)
    except EncodeError as e:
        print(f"\n  [ERROR] Encoding failed: {e}")
        sys.exit(1)
    except CaptionError as e:
        print(f"\n  [ERROR] {type(e).__name__}: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"\n  [ERROR] Invalid setting: {e}")
        sys.exit(2)
    except RuntimeError as e:
        print(f"\n  [ERROR] Runtime error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n  [ERROR] Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
