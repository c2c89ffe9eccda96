"""
Composition root: wires the shared cache, tracker and orchestrator.

One StudioServices instance is created per process (or per test) and its
cache and tracker are shared by every request made through it.
"""

from dataclasses import dataclass
from typing import Optional

from .config.loader import StudioConfig
from .core.cache import ResponseCache
from .core.cost_tracker import CostTracker
from .core.orchestrator import RequestOrchestrator, RetryPolicy
from .core.pricing import PRICING_TABLE
from .core.rate_limiter import RateLimiter
from .sdk.factory import ClientFactory, create_client_factory


@dataclass
class StudioServices:
    cache: ResponseCache
    tracker: CostTracker
    orchestrator: RequestOrchestrator
    rate_limiter: Optional[RateLimiter] = None


def build_services(
    settings: Optional[StudioConfig] = None,
    client_factory: Optional[ClientFactory] = None,
) -> StudioServices:
    """Build the service graph from configuration.

    Args:
        settings: Loaded configuration (defaults when omitted)
        client_factory: Remote client factory; built from the provider
            settings and environment when omitted

    Returns:
        StudioServices sharing one cache and one tracker

    Raises:
        ValueError: If the configured provider is unknown
    """
    settings = settings or StudioConfig()

    cache = ResponseCache(max_size=settings.cache.max_size, ttl_ms=settings.cache.ttl_ms)
    tracker = CostTracker(
        pricing=PRICING_TABLE.with_overrides(settings.pricing),
        history_size=settings.tracking.history_size,
    )
    if client_factory is None:
        client_factory = create_client_factory(
            provider=settings.provider.name,
            base_url=settings.provider.base_url,
        )

    rate_limiter = None
    if settings.rate_limit.enabled:
        rate_limiter = RateLimiter(
            max_requests=settings.rate_limit.max_requests,
            window_ms=settings.rate_limit.window_ms,
        )

    orchestrator = RequestOrchestrator(
        cache=cache,
        tracker=tracker,
        client_factory=client_factory,
        retry_policy=RetryPolicy(
            max_retries=settings.retry.max_retries,
            base_delay_ms=settings.retry.base_delay_ms,
            max_jitter_ms=settings.retry.max_jitter_ms,
        ),
        rate_limiter=rate_limiter,
    )
    return StudioServices(
        cache=cache, tracker=tracker, orchestrator=orchestrator, rate_limiter=rate_limiter
    )
