"""
Speech-to-subtitle call against the external model.
"""
import logging
import typing as t

import pydantic
from google.genai import types
from pydantic import TypeAdapter

from subfix_app.config import DEFAULT_CONTEXT
from subfix_app.core.errors import ModelError, TranscriptionError
from subfix_app.core.model_client import object_array_schema
from subfix_app.core.models import Segment

# Set up logging
logger = logging.getLogger(__name__)

_segments_adapter = TypeAdapter(t.List[Segment])

TRANSCRIBE_PROMPT = (
    "Transcribe this audio. Return as a JSON array of subtitle segments.\n"
    "Each segment must have: id (number), startTime (string HH:MM:SS,mmm), "
    "endTime (string HH:MM:SS,mmm), and text (string).\n"
    "Context to help with terminology: {context}"
)

SEGMENT_SCHEMA = object_array_schema({
    "id": types.Type.NUMBER,
    "startTime": types.Type.STRING,
    "endTime": types.Type.STRING,
    "text": types.Type.STRING,
})


def build_prompt(user_context: t.Optional[str]) -> str:
    return TRANSCRIBE_PROMPT.format(context=user_context or DEFAULT_CONTEXT)


def parse_segments(payload: t.Any) -> t.List[Segment]:
    """Validate the model's payload into segments.

    Raises:
        TranscriptionError: If the payload is not an array of well-formed
            segments or segment ids repeat
    """
    if not isinstance(payload, list):
        raise TranscriptionError(
            f"Transcription response was {type(payload).__name__}, expected a JSON array"
        )
    try:
        segments = _segments_adapter.validate_python(payload)
    except pydantic.ValidationError as e:
        raise TranscriptionError(f"Malformed transcription response: {e.error_count()} invalid field(s)") from e

    seen = set()
    for seg in segments:
        if seg.id in seen:
            raise TranscriptionError(f"Duplicate segment id {seg.id} in transcription response")
        seen.add(seg.id)
        seg.original_text = seg.text
    return segments


async def transcribe(
    audio: bytes,
    mime_type: str,
    user_context: t.Optional[str],
    client,
) -> t.List[Segment]:
    """Transcribe audio into ordered subtitle segments.

    One request per job; the payload is sent whole.

    Args:
        audio: Raw audio bytes
        mime_type: MIME type of ``audio``
        user_context: Optional terminology hint, substituted verbatim
        client: Object exposing ``generate_json`` (see ModelClient)

    Returns:
        Segments with ``original_text`` captured

    Raises:
        TranscriptionError: If the call fails or the response is malformed
    """
    logger.info(f"Transcribing {len(audio)} bytes of {mime_type}")
    try:
        payload = await client.generate_json(
            build_prompt(user_context),
            SEGMENT_SCHEMA,
            media=audio,
            mime_type=mime_type,
        )
    except ModelError as e:
        raise TranscriptionError(str(e)) from e

    segments = parse_segments(payload)
    logger.info(f"Transcription completed: {len(segments)} segments")
    return segments
