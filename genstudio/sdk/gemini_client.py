"""
Google Gen AI client adapter.

Maps provider-neutral parts and settings onto the google-genai SDK and maps
its responses back into RemoteResponse. Provider errors propagate unchanged.
"""

import base64
import logging
from typing import Any, AsyncIterator, List, Optional

from google import genai
from google.genai import types

from .base import (
    ContentPart,
    GenerationSettings,
    GroundingChunk,
    InlineData,
    RemoteCandidate,
    RemoteGenerationClient,
    RemoteResponse,
)

logger = logging.getLogger(__name__)


class GeminiClient(RemoteGenerationClient):
    """Async Gemini client bound to one API key."""

    def __init__(self, api_key: str):
        """Initialize the client.

        Args:
            api_key: Google AI API key (required)

        Raises:
            ValueError: If api_key is missing/empty
        """
        if not api_key or not api_key.strip():
            raise ValueError("api_key is required and cannot be empty")
        self.client = genai.Client(api_key=api_key)

    async def generate_content(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> RemoteResponse:
        logger.debug("Gemini request: model=%s, parts=%d", model, len(parts))
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=types.Content(role="user", parts=[_to_part(part) for part in parts]),
            config=build_generate_config(settings),
        )
        return RemoteResponse(
            candidates=[_from_candidate(candidate) for candidate in (response.candidates or [])]
        )

    async def generate_content_stream(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> AsyncIterator[str]:
        logger.debug("Gemini stream: model=%s, parts=%d", model, len(parts))
        response_stream = await self.client.aio.models.generate_content_stream(
            model=model,
            contents=types.Content(role="user", parts=[_to_part(part) for part in parts]),
            config=build_generate_config(settings),
        )
        async for chunk in response_stream:
            if not chunk.candidates:
                continue
            text = _from_candidate(chunk.candidates[0]).text
            if text:
                yield text


def build_generate_config(settings: GenerationSettings) -> types.GenerateContentConfig:
    """Translate GenerationSettings into a GenerateContentConfig."""
    options = {
        "system_instruction": settings.system_instruction,
        "response_mime_type": settings.response_mime_type,
        "temperature": settings.temperature,
        "top_p": settings.top_p,
        "top_k": settings.top_k,
        "seed": settings.seed,
        "max_output_tokens": settings.max_output_tokens,
    }
    if settings.thinking_budget is not None:
        options["thinking_config"] = types.ThinkingConfig(thinking_budget=settings.thinking_budget)
    if settings.use_search:
        options["tools"] = [types.Tool(google_search=types.GoogleSearch())]
    if settings.aspect_ratio is not None:
        options["image_config"] = types.ImageConfig(
            aspect_ratio=settings.aspect_ratio,
            image_size=settings.image_size,
        )
    return types.GenerateContentConfig(**options)


def _to_part(part: ContentPart) -> types.Part:
    if part.inline_data is not None:
        return types.Part.from_bytes(
            data=base64.b64decode(part.inline_data.data),
            mime_type=part.inline_data.mime_type,
        )
    return types.Part.from_text(text=part.text)


def _from_candidate(candidate: Any) -> RemoteCandidate:
    content = getattr(candidate, "content", None)
    parts = (getattr(content, "parts", None) or []) if content is not None else []

    texts = []
    inline = None
    for part in parts:
        # Thought summaries are not part of the answer.
        if getattr(part, "thought", False):
            continue
        if getattr(part, "text", None):
            texts.append(part.text)
        blob = getattr(part, "inline_data", None)
        if inline is None and blob is not None and blob.data:
            inline = InlineData(
                mime_type=blob.mime_type or "image/png",
                data=_encode(blob.data),
            )

    return RemoteCandidate(
        text="".join(texts) or None,
        inline_data=inline,
        finish_reason=_enum_name(getattr(candidate, "finish_reason", None)),
        grounding_chunks=_grounding_chunks(getattr(candidate, "grounding_metadata", None)),
    )


def _grounding_chunks(metadata: Any) -> List[GroundingChunk]:
    chunks = getattr(metadata, "grounding_chunks", None) or []
    result = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if uri:
            result.append(GroundingChunk(uri=uri, title=getattr(web, "title", None)))
    return result


def _encode(data: Any) -> str:
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("ascii")
    return str(data)


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)
