"""
Request orchestration: cache, remote call, retry and cost tracking.

Flow for one generate() call:

    CacheCheck -> hit: return cached result (zero-cost usage record)
               -> miss: Attempt(0)
    Attempt(n) -> success: cache store, usage record, return
               -> transient failure, n < max_retries: backoff, Attempt(n+1)
               -> transient failure, retries exhausted: usage record, raise
               -> terminal failure: usage record, raise

Attempts within one call are strictly sequential. The only suspension
points are the remote call and the backoff sleep.

stream() follows the same attempt loop without the cache, and stops
retrying once the first chunk has been yielded.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from ..sdk.base import ContentPart, GenerationSettings, InlineData, RemoteResponse
from ..sdk.factory import ClientFactory
from .cache import ResponseCache
from .cost_tracker import CostTracker
from .errors import ApiError, AppError, RateLimitError, SafetyError, classify_error
from .fingerprint import FingerprintConfig, fingerprint_request
from .images import clean_base64, decode_base64, get_mime_type, to_data_uri
from .models import AspectRatio, GenerationResult, GroundingSource, ImageSize, RequestConfig
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_RETRY_COUNT = 2
RETRY_BASE_DELAY_MS = 1000
RETRY_MAX_JITTER_MS = 500
DEFAULT_TEMPERATURE = 0.7
DEFAULT_ANALYSIS_PROMPT = "Analyze input assets."
CANCELLED_STATUS = 499

SAFETY_FINISH_REASONS = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"})


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with additive jitter."""
    max_retries: int = DEFAULT_RETRY_COUNT
    base_delay_ms: float = RETRY_BASE_DELAY_MS
    max_jitter_ms: float = RETRY_MAX_JITTER_MS

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        if self.max_jitter_ms < 0:
            raise ValueError("max_jitter_ms must be >= 0")

    def compute_delay_ms(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay before the attempt after ``attempt`` (zero-based)."""
        return self.base_delay_ms * (2 ** attempt) + rng() * self.max_jitter_ms


class RequestOrchestrator:
    """Top-level entry point for generation requests.

    The cache, tracker and optional rate limiter are shared services handed
    in by the composition root; the orchestrator holds no other state.
    """

    def __init__(
        self,
        cache: ResponseCache,
        tracker: CostTracker,
        client_factory: ClientFactory,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initialize the orchestrator.

        Args:
            cache: Response cache shared by all requests
            tracker: Usage ledger shared by all requests
            client_factory: Builds a fresh remote client per attempt
            retry_policy: Backoff settings and default retry budget
            sleep: Awaitable sleep taking seconds, injectable for tests
            rng: Source of jitter in [0, 1)
            rate_limiter: Per-session request limiter; no limit when omitted
        """
        self.cache = cache
        self.tracker = tracker
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter
        self._client_factory = client_factory
        self._sleep = sleep
        self._rng = rng

    async def generate(
        self,
        prompt: str,
        images: Optional[Sequence[str]] = None,
        config: Optional[RequestConfig] = None,
    ) -> GenerationResult:
        """Generate content for a prompt and optional images.

        An empty prompt is still sent, with a default analysis instruction,
        so image-only requests work.

        Args:
            prompt: Prompt text
            images: Ordered image data URIs
            config: Request configuration (defaults apply when omitted)

        Returns:
            Normalized generation result

        Raises:
            ValidationError: An image payload is not valid base64
            RateLimitError: The session exceeded the local request limit
            AppError: Classified failure; transient failures only after the
                retry budget is exhausted
        """
        config = config or RequestConfig()
        images = [image for image in (images or []) if image]
        model = config.model.value
        self._check_rate_limit(config)

        fingerprint = None
        if config.enable_cache:
            fingerprint = fingerprint_request(
                prompt, images, config.model, FingerprintConfig.from_request(config)
            )
            cached = self.cache.get(fingerprint)
            if cached is not None:
                self.tracker.track_request(
                    config.session_id, model, prompt, cached.text, cached=True, success=True
                )
                return cached

        max_retries = self._max_retries(config)
        parts = build_parts(prompt, images)
        settings = build_settings(config)

        attempt = 0
        while True:
            try:
                _check_cancelled(config)
                client = self._client_factory()
                response = await client.generate_content(model, parts, settings)
                result = parse_response(response)
            except Exception as exc:
                error = classify_error(exc)

                if not error.is_transient:
                    logger.error("Generation failed (terminal): %r", error)
                    self._track_failure(config, prompt)
                    _raise_classified(error, exc)

                if attempt >= max_retries:
                    logger.error("Generation failed after %d attempts: %r", attempt + 1, error)
                    self._track_failure(config, prompt)
                    _raise_classified(error, exc)

                await self._backoff(attempt, max_retries, error)
                attempt += 1
                continue

            if fingerprint is not None:
                self.cache.set(fingerprint, result)
            self.tracker.track_request(
                config.session_id, model, prompt, result.text, cached=False, success=True
            )
            return result

    async def stream(
        self,
        prompt: str,
        images: Optional[Sequence[str]] = None,
        config: Optional[RequestConfig] = None,
    ) -> AsyncIterator[str]:
        """Stream response text for a prompt and optional images.

        Streams bypass the cache. A transient failure is retried only while
        no text has been yielded; once the caller has seen output, any
        failure ends the stream. Usage is recorded once, with the joined
        text, when the stream completes or fails.

        Args:
            prompt: Prompt text
            images: Ordered image data URIs
            config: Request configuration (defaults apply when omitted)

        Yields:
            Text chunks in arrival order

        Raises:
            ValidationError: An image payload is not valid base64
            RateLimitError: The session exceeded the local request limit
            AppError: Classified failure
        """
        config = config or RequestConfig()
        images = [image for image in (images or []) if image]
        model = config.model.value
        self._check_rate_limit(config)

        max_retries = self._max_retries(config)
        parts = build_parts(prompt, images)
        settings = build_settings(config)

        chunks: List[str] = []
        attempt = 0
        while True:
            try:
                _check_cancelled(config)
                client = self._client_factory()
                async for text in client.generate_content_stream(model, parts, settings):
                    _check_cancelled(config)
                    chunks.append(text)
                    yield text
                if not chunks:
                    raise ApiError("EMPTY_RESULT: Stream produced no text.", 500)
            except Exception as exc:
                error = classify_error(exc)

                if not error.is_transient or chunks or attempt >= max_retries:
                    logger.error("Streaming failed after %d attempts: %r", attempt + 1, error)
                    self._track_failure(config, prompt)
                    _raise_classified(error, exc)

                await self._backoff(attempt, max_retries, error)
                attempt += 1
                continue

            self.tracker.track_request(
                config.session_id, model, prompt, "".join(chunks), cached=False, success=True
            )
            return

    def _check_rate_limit(self, config: RequestConfig) -> None:
        if self.rate_limiter is None or self.rate_limiter.check(config.session_id):
            return
        retry_after_ms = self.rate_limiter.retry_after_ms(config.session_id)
        raise RateLimitError(
            f"LOCAL_RATE_LIMIT: Session '{config.session_id}' exceeded "
            f"{self.rate_limiter.max_requests} requests per {self.rate_limiter.window_ms:g}ms.",
            retry_after=retry_after_ms / 1000,
        )

    def _max_retries(self, config: RequestConfig) -> int:
        if config.max_retries is not None:
            return config.max_retries
        return self.retry_policy.max_retries

    async def _backoff(self, attempt: int, max_retries: int, error: AppError) -> None:
        delay_ms = self.retry_policy.compute_delay_ms(attempt, self._rng)
        logger.warning(
            "Retry %d/%d in %dms: %s", attempt + 1, max_retries, round(delay_ms), error.message
        )
        await self._sleep(delay_ms / 1000)

    def _track_failure(self, config: RequestConfig, prompt: str) -> None:
        self.tracker.track_request(
            config.session_id, config.model.value, prompt, None, cached=False, success=False
        )


def build_parts(prompt: str, images: Sequence[str]) -> List[ContentPart]:
    """Images first, in order, then the prompt text.

    Raises:
        ValidationError: An image body is not valid base64
    """
    parts = []
    for index, image in enumerate(images):
        data = clean_base64(image)
        decode_base64(data, field_name=f"images[{index}]")
        parts.append(ContentPart(inline_data=InlineData(mime_type=get_mime_type(image), data=data)))
    parts.append(ContentPart(text=prompt or DEFAULT_ANALYSIS_PROMPT))
    return parts


def build_settings(config: RequestConfig) -> GenerationSettings:
    """Derive provider-neutral settings from a request config."""
    aspect_ratio = None
    image_size = None
    if config.model.is_image_model:
        aspect_ratio = (config.aspect_ratio or AspectRatio.SQUARE).value
        if config.model.supports_image_size:
            image_size = (config.image_size or ImageSize.SIZE_1K).value

    return GenerationSettings(
        temperature=config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE,
        top_p=config.top_p,
        top_k=config.top_k,
        seed=config.seed,
        max_output_tokens=config.effective_max_output_tokens,
        thinking_budget=config.thinking_budget,
        system_instruction=config.system_instruction,
        response_mime_type=config.response_mime_type,
        use_search=config.use_search,
        aspect_ratio=aspect_ratio,
        image_size=image_size,
    )


def parse_response(response: RemoteResponse) -> GenerationResult:
    """Normalize the first candidate of a remote response.

    Raises:
        ApiError: No candidates, or a candidate with neither text nor image
        SafetyError: Empty candidate stopped for a safety reason
    """
    if not response.candidates:
        raise ApiError("ZERO_CANDIDATES: Pipeline produced no results.", 500)

    candidate = response.candidates[0]
    image = None
    if candidate.inline_data is not None and candidate.inline_data.data:
        image = to_data_uri(candidate.inline_data.data, candidate.inline_data.mime_type)

    result = GenerationResult(
        text=candidate.text or None,
        image=image,
        grounding_sources=tuple(
            GroundingSource(uri=chunk.uri, title=chunk.title) for chunk in candidate.grounding_chunks
        ),
        finish_reason=candidate.finish_reason,
    )

    if not result.has_content:
        if candidate.finish_reason in SAFETY_FINISH_REASONS:
            raise SafetyError(f"SAFETY_BLOCK: Generation stopped ({candidate.finish_reason}).")
        raise ApiError(
            f"EMPTY_RESULT: Candidate contained no text or image (finish reason: {candidate.finish_reason}).",
            500,
        )
    return result


def _raise_classified(error: AppError, cause: BaseException) -> None:
    if error is cause:
        raise error
    raise error from cause


def _check_cancelled(config: RequestConfig) -> None:
    if config.is_cancelled:
        raise ApiError("Request aborted by user", CANCELLED_STATUS)
