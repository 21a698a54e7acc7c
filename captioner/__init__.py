"""
Auto Captioner — Subtitle Timeline Pipeline Package

Modular pipeline for turning a short video into a captioned video:
  - segments: timed text segments and their normalization
  - timecode: SRT timecode formatting and parsing
  - srt_writer: standard SRT document output
  - synchronizer: playback-clock driven cue tracking
  - style: caption style snapshot and force-style rendering
  - audio_extractor: FFmpeg-based audio extraction
  - recognition: speech-to-text backends (demo, faster-whisper, OpenAI)
  - encoder: subtitle burn-in with primary/fallback codec profiles
  - orchestrator: end-to-end job sequencing with progress reporting
  - session: per-session state with last-started-wins generation
  - player: external player launch and terminal live preview
"""
