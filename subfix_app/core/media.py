"""
ffmpeg wrapper that turns uploaded video into audio for transcription.
"""
import logging
import tempfile
import typing as t
from pathlib import Path

import ffmpeg

from subfix_app.core.errors import ExtractionError

# Set up logging
logger = logging.getLogger(__name__)

EXTRACTED_MIME_TYPE = "audio/mpeg"


def needs_extraction(mime_type: str) -> bool:
    """Return True for any video MIME type."""
    return (mime_type or "").lower().startswith("video/")


def extract_audio(media_path: t.Union[str, Path]) -> Path:
    """Extract the audio track of a media file as MP3.

    The caller owns the returned file and must delete it.

    Args:
        media_path: Path to media file

    Returns:
        Path to the extracted audio file

    Raises:
        ExtractionError: If ffmpeg fails or is not installed
    """
    media_path = Path(media_path)
    temp_file = tempfile.NamedTemporaryFile(suffix=".mp3", delete=False)
    temp_path = Path(temp_file.name)
    temp_file.close()

    try:
        logger.info(f"Extracting audio from {media_path}")
        (
            ffmpeg
            .input(str(media_path))
            .output(str(temp_path), vn=None, acodec='libmp3lame', format='mp3')
            .overwrite_output()
            .run(capture_stdout=True, capture_stderr=True)
        )
        logger.info(f"Audio extracted to {temp_path}")
        return temp_path

    except ffmpeg.Error as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else str(e)
        logger.error(f"Error extracting audio: {stderr}")
        remove_quietly(temp_path)
        lines = stderr.strip().splitlines()
        raise ExtractionError(f"Audio extraction failed: {lines[-1] if lines else 'ffmpeg error'}") from e
    except FileNotFoundError as e:
        # ffmpeg binary missing
        remove_quietly(temp_path)
        raise ExtractionError(f"Audio extraction failed: {e}") from e


def remove_quietly(path: t.Optional[t.Union[str, Path]]) -> None:
    """Best-effort file removal; failures are only logged."""
    if not path:
        return
    path = Path(path)
    try:
        if path.exists():
            path.unlink()
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
