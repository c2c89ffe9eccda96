"""Contract between the orchestrator and a remote generation endpoint."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional


@dataclass(frozen=True)
class InlineData:
    """Base64 payload with its MIME type."""
    mime_type: str
    data: str


@dataclass(frozen=True)
class ContentPart:
    """One element of a request: either text or an inline image."""
    text: Optional[str] = None
    inline_data: Optional[InlineData] = None

    def __post_init__(self):
        if (self.text is None) == (self.inline_data is None):
            raise ValueError("ContentPart requires exactly one of text or inline_data")


@dataclass(frozen=True)
class GenerationSettings:
    """Provider-neutral generation parameters."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    seed: Optional[int] = None
    max_output_tokens: Optional[int] = None
    thinking_budget: Optional[int] = None
    system_instruction: Optional[str] = None
    response_mime_type: Optional[str] = None
    use_search: bool = False
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None


@dataclass(frozen=True)
class GroundingChunk:
    uri: str
    title: Optional[str] = None


@dataclass(frozen=True)
class RemoteCandidate:
    text: Optional[str] = None
    inline_data: Optional[InlineData] = None
    finish_reason: Optional[str] = None
    grounding_chunks: List[GroundingChunk] = field(default_factory=list)


@dataclass(frozen=True)
class RemoteResponse:
    candidates: List[RemoteCandidate] = field(default_factory=list)


class RemoteGenerationClient(ABC):
    """
    Contract for remote generation clients.

    Implementations MUST:
    - Raise the provider's own errors unmodified (classification happens
      in the orchestrator)
    - Return every candidate the provider produced, possibly none
    """

    @abstractmethod
    async def generate_content(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> RemoteResponse:
        """Send one generation request and return the structured response."""

    async def generate_content_stream(
        self,
        model: str,
        parts: List[ContentPart],
        settings: GenerationSettings,
    ) -> AsyncIterator[str]:
        """Yield response text incrementally.

        Clients without a streaming endpoint yield the whole first
        candidate's text once.
        """
        response = await self.generate_content(model, parts, settings)
        if response.candidates and response.candidates[0].text:
            yield response.candidates[0].text
