"""
Request fingerprinting for the response cache.

Derives a short, stable key from the parts of a request that influence the
generated output. Session id, retry budget and cancellation token are never
part of the key.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import AspectRatio, ImageSize, ModelId, RequestConfig

# Characters taken from each end of an image payload for its digest.
IMAGE_DIGEST_CHARS = 20

FINGERPRINT_PREFIX = "ai_"

_HASH_SEED = 5381
_HASH_MASK = 0xFFFFFFFFFFFFFFFF


@dataclass(frozen=True)
class FingerprintConfig:
    """Output-relevant subset of a RequestConfig, in canonical field order."""
    aspect_ratio: Optional[AspectRatio] = None
    image_size: Optional[ImageSize] = None
    temperature: Optional[float] = None

    @classmethod
    def from_request(cls, config: RequestConfig) -> "FingerprintConfig":
        return cls(
            aspect_ratio=config.aspect_ratio,
            image_size=config.image_size,
            temperature=config.temperature,
        )

    def serialize(self) -> str:
        aspect = self.aspect_ratio.value if self.aspect_ratio else ""
        size = self.image_size.value if self.image_size else ""
        temperature = "" if self.temperature is None else repr(float(self.temperature))
        return f"aspect_ratio={aspect}|image_size={size}|temperature={temperature}"


def fingerprint_request(
    prompt: str,
    images: Sequence[str],
    model: ModelId,
    config: Optional[FingerprintConfig] = None,
) -> str:
    """Compute the cache key for a request.

    Images contribute a lightweight, order-preserving digest (head and tail
    of each payload) rather than their full content. Two payloads that
    share both ends therefore collide; that is an accepted risk of serving
    a stale cached result, not a correctness guarantee.

    Args:
        prompt: Prompt text
        images: Ordered image payloads (data URIs or raw base64)
        model: Target model
        config: Output-relevant config subset

    Returns:
        Fingerprint of the form ``ai_<16 hex digits>``
    """
    model_name = model.value if isinstance(model, ModelId) else str(model)
    image_digest = "|".join(_image_digest(image) for image in images)
    config_str = config.serialize() if config is not None else ""
    combined = f"{model_name}:{prompt}:{image_digest}:{config_str}"
    return f"{FINGERPRINT_PREFIX}{_djb2(combined):016x}"


def _image_digest(image: str) -> str:
    return image[:IMAGE_DIGEST_CHARS] + image[-IMAGE_DIGEST_CHARS:]


def _djb2(text: str) -> int:
    value = _HASH_SEED
    for char in text:
        value = ((value << 5) + value + ord(char)) & _HASH_MASK
    return value
