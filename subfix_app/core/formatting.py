# -*- coding: utf-8 -*-
"""
Utilities for formatting subtitle data.
"""
import logging
import re
import typing as t

from subfix_app.core.models import Segment

# Set up logging
logger = logging.getLogger(__name__)

_MEDIA_SUFFIX_RE = re.compile(r"\.(mp3|mp4)$", re.IGNORECASE)


def segments_to_srt(segments: t.Sequence[Segment]) -> str:
    """
    Render segments as SubRip (.srt) text.

    Each cue is rendered as ``<id>\\n<start> --> <end>\\n<text>\\n`` and cues
    are joined with a single newline, which leaves one blank line between
    them. Segments are written in the order given; ids are not renumbered.

    Args:
        segments: Segments in playback order.

    Returns:
        str: The SRT document. Returns an empty string for no segments.
    """
    if not segments:
        logger.warning("segments_to_srt called with empty segment list.")
        return ""

    cues = [f"{s.id}\n{s.start_time} --> {s.end_time}\n{s.text}\n" for s in segments]
    logger.info(f"Formatted {len(cues)} segments as SRT.")
    return "\n".join(cues)


def format_srt_time(seconds: float) -> str:
    """Seconds -> ``HH:MM:SS,mmm``."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def srt_filename(file_name: str) -> str:
    """Download name for an export: ``talk.mp4`` -> ``talk.srt``."""
    if _MEDIA_SUFFIX_RE.search(file_name):
        return _MEDIA_SUFFIX_RE.sub(".srt", file_name)
    return f"{file_name}.srt"


def replace_first(text: str, old: str, new: str) -> str:
    """Literal, first-occurrence substitution (no regex)."""
    if not old:
        return text
    return text.replace(old, new, 1)
