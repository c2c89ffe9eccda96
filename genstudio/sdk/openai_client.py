"""
OpenAI-compatible client adapter.

Speaks the Chat Completions protocol, which Google exposes for Gemini models
as well as OpenAI itself. Images are sent as ``image_url`` data URIs.
Thinking budgets, search grounding and image output have no equivalent in
this protocol and are ignored.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from .base import (
    ContentPart,
    GenerationSettings,
    RemoteCandidate,
    RemoteGenerationClient,
    RemoteResponse,
)

logger = logging.getLogger(__name__)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

DEFAULT_TIMEOUT_SECONDS = 120.0


class OpenAICompatibleClient(RemoteGenerationClient):
    """Async Chat Completions client.

    The request timeout belongs to the SDK client; the orchestrator adds none.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize the client.

        Args:
            api_key: API key for the endpoint (required)
            base_url: Endpoint base URL (defaults to Gemini's OpenAI-compatible API)
            timeout: SDK request timeout in seconds

        Raises:
            ValueError: If api_key is missing/empty
        """
        if not api_key or not api_key.strip():
            raise ValueError("api_key is required and cannot be empty")
        self.base_url = base_url or GEMINI_OPENAI_BASE_URL
        self.client = AsyncOpenAI(api_key=api_key, base_url=self.base_url, timeout=timeout)

    async def generate_content(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> RemoteResponse:
        if settings.thinking_budget is not None or settings.use_search:
            logger.debug("Thinking budget and search grounding are ignored by %s", self.base_url)

        response = await self.client.chat.completions.create(
            model=model,
            messages=build_messages(parts, settings.system_instruction),
            **_completion_options(settings),
        )

        return RemoteResponse(candidates=[
            RemoteCandidate(
                text=choice.message.content or None,
                finish_reason=choice.finish_reason,
            )
            for choice in (response.choices or [])
        ])

    async def generate_content_stream(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> AsyncIterator[str]:
        response_stream = await self.client.chat.completions.create(
            model=model,
            messages=build_messages(parts, settings.system_instruction),
            stream=True,
            **_completion_options(settings),
        )
        async for chunk in response_stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content


def build_messages(parts: List[ContentPart], system_instruction: Optional[str] = None) -> List[Dict[str, Any]]:
    """Build chat messages: optional system message, then one user message."""
    content = []
    for part in parts:
        if part.inline_data is not None:
            url = f"data:{part.inline_data.mime_type};base64,{part.inline_data.data}"
            content.append({"type": "image_url", "image_url": {"url": url}})
        else:
            content.append({"type": "text", "text": part.text})

    messages = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    messages.append({"role": "user", "content": content})
    return messages


def _completion_options(settings: GenerationSettings) -> Dict[str, Any]:
    options = {
        "temperature": settings.temperature,
        "top_p": settings.top_p,
        "seed": settings.seed,
        "max_tokens": settings.max_output_tokens,
    }
    if settings.response_mime_type == "application/json":
        options["response_format"] = {"type": "json_object"}
    return {key: value for key, value in options.items() if value is not None}
