"""
Request and result value types for the generation pipeline.

RequestConfig is validated on construction; GenerationResult is the
normalized output handed back to callers and stored in the response cache.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from .errors import ValidationError

# Output tokens reserved on top of the thinking budget when the caller
# supplied an explicit ceiling that is too small.
THINKING_OUTPUT_MARGIN = 1024

# Output tokens granted on top of the thinking budget when no ceiling is given.
DEFAULT_MAX_OUTPUT_TOKENS = 2048


class ModelId(str, Enum):
    """Supported model variants."""
    GEMINI_3_FLASH = "gemini-3-flash-preview"
    GEMINI_3_PRO = "gemini-3-pro-preview"
    GEMINI_25_FLASH_IMAGE = "gemini-2.5-flash-image"
    GEMINI_3_PRO_IMAGE = "gemini-3-pro-image-preview"
    GEMINI_25_FLASH_LITE = "gemini-2.5-flash-lite-latest"
    VEO_31_FAST = "veo-3.1-fast-generate-preview"

    @property
    def is_image_model(self) -> bool:
        return "image" in self.value

    @property
    def supports_image_size(self) -> bool:
        return self is ModelId.GEMINI_3_PRO_IMAGE


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    PORTRAIT_2_3 = "2:3"
    LANDSCAPE_3_2 = "3:2"
    PORTRAIT_3_4 = "3:4"
    LANDSCAPE_4_3 = "4:3"
    PORTRAIT_9_16 = "9:16"
    LANDSCAPE_16_9 = "16:9"
    ULTRAWIDE_21_9 = "21:9"


class ImageSize(str, Enum):
    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"


@dataclass(frozen=True)
class RequestConfig:
    """Immutable description of one generation request.

    String values for model, aspect_ratio and image_size are coerced to
    their enums. Invalid values raise ValidationError carrying per-field
    messages.

    The cancellation ``signal`` is any object exposing ``is_set()``
    (typically ``asyncio.Event``). It is excluded from equality and from
    the cache fingerprint.
    """
    model: ModelId = ModelId.GEMINI_3_FLASH
    aspect_ratio: Optional[AspectRatio] = None
    image_size: Optional[ImageSize] = None
    thinking_budget: Optional[int] = None
    max_output_tokens: Optional[int] = None
    use_search: bool = False
    system_instruction: Optional[str] = None
    response_mime_type: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    seed: Optional[int] = None
    max_retries: Optional[int] = None
    enable_cache: bool = True
    session_id: str = "default"
    signal: Optional[Any] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        """Coerce enum fields and validate numeric ranges."""
        errors = {}

        for name, enum_cls in (
            ("model", ModelId),
            ("aspect_ratio", AspectRatio),
            ("image_size", ImageSize),
        ):
            value = getattr(self, name)
            if value is None or isinstance(value, enum_cls):
                continue
            try:
                object.__setattr__(self, name, enum_cls(value))
            except ValueError:
                allowed = [member.value for member in enum_cls]
                errors[name] = [f"must be one of: {allowed}"]

        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            errors["temperature"] = ["must be between 0 and 2"]
        if self.top_p is not None and not 0.0 <= self.top_p <= 1.0:
            errors["top_p"] = ["must be between 0 and 1"]
        if self.top_k is not None and self.top_k < 1:
            errors["top_k"] = ["must be >= 1"]
        if self.thinking_budget is not None and self.thinking_budget < 0:
            errors["thinking_budget"] = ["must be >= 0"]
        if self.max_output_tokens is not None and self.max_output_tokens < 1:
            errors["max_output_tokens"] = ["must be >= 1"]
        if self.max_retries is not None and self.max_retries < 0:
            errors["max_retries"] = ["must be >= 0"]
        if not self.session_id:
            errors["session_id"] = ["cannot be empty"]

        if errors:
            raise ValidationError("Invalid request configuration", errors)

    @property
    def effective_max_output_tokens(self) -> Optional[int]:
        """Output-token ceiling sent to the model.

        With a thinking budget the ceiling always leaves room for output
        beyond the reasoning allowance; it is never below the budget.
        """
        if self.thinking_budget is None:
            return self.max_output_tokens
        if self.max_output_tokens:
            return max(self.max_output_tokens, self.thinking_budget + THINKING_OUTPUT_MARGIN)
        return self.thinking_budget + DEFAULT_MAX_OUTPUT_TOKENS

    @property
    def is_cancelled(self) -> bool:
        return self.signal is not None and self.signal.is_set()


@dataclass(frozen=True)
class GroundingSource:
    """Citation returned alongside a search-grounded response."""
    uri: str
    title: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    """Normalized generation output.

    A successful result always carries text, an image data URI, or both.
    """
    text: Optional[str] = None
    image: Optional[str] = None
    grounding_sources: Tuple[GroundingSource, ...] = ()
    finish_reason: Optional[str] = None

    @property
    def has_content(self) -> bool:
        return bool(self.text) or bool(self.image)
