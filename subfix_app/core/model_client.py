"""
Thin async wrapper around the Gemini API for structured (JSON) responses.

Everything else in the app talks to the model through ``ModelClient.generate_json``
so tests can substitute a fake with the same coroutine signature.
"""
import json
import logging
import typing as t

from google import genai
from google.genai import types

from subfix_app.config import GOOGLE_API_KEY, MODEL_NAME
from subfix_app.core.errors import ModelError

logger = logging.getLogger(__name__)

# field name -> schema type, in the order they are declared to the model
FieldSpec = t.Dict[str, types.Type]


def object_array_schema(fields: FieldSpec, required: t.Sequence[str] = ()) -> types.Schema:
    """Schema for a JSON array of flat objects."""
    return types.Schema(
        type=types.Type.ARRAY,
        items=types.Schema(
            type=types.Type.OBJECT,
            properties={name: types.Schema(type=kind) for name, kind in fields.items()},
            required=list(required) or list(fields),
        ),
    )


class ModelClient:
    """Lazily-initialised Gemini client."""

    def __init__(self, api_key: t.Optional[str] = GOOGLE_API_KEY, model: str = MODEL_NAME,
                 temperature: float = 0.2):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client: t.Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ModelError("GOOGLE_API_KEY is not set")
            self._client = genai.Client(api_key=self.api_key)
            logger.info("Gemini client initialised for model %s", self.model)
        return self._client

    async def generate_json(
        self,
        prompt: str,
        schema: types.Schema,
        media: t.Optional[bytes] = None,
        mime_type: t.Optional[str] = None,
    ) -> t.Any:
        """Send one request and return the decoded JSON payload.

        Args:
            prompt: Instruction text
            schema: Declared response schema
            media: Optional binary payload sent inline before the prompt
            mime_type: MIME type of ``media``

        Raises:
            ModelError: On transport/API failure, an empty body or non-JSON text
        """
        contents: t.List[t.Any] = []
        if media is not None:
            contents.append(types.Part.from_bytes(data=media, mime_type=mime_type or "audio/mpeg"))
        contents.append(prompt)

        config = types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=schema,
        )
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except ModelError:
            raise
        except Exception as e:
            raise ModelError(f"Model request failed: {e}") from e

        raw = (response.text or "").strip()
        if not raw:
            raise ModelError("Empty response from model.")
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ModelError(f"Model returned non-JSON: {raw[:200]}") from e
