"""
Configuration management and loading.

Reads the studio YAML file: cache sizing, retry policy, usage history,
per-session rate limiting, pricing overrides and the remote provider.
Every section is optional.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.cache import DEFAULT_MAX_SIZE, DEFAULT_TTL_MS
from ..core.cost_tracker import DEFAULT_HISTORY_SIZE
from ..core.orchestrator import DEFAULT_RETRY_COUNT, RETRY_BASE_DELAY_MS, RETRY_MAX_JITTER_MS
from ..core.pricing import ModelPricing
from ..core.rate_limiter import DEFAULT_MAX_REQUESTS, DEFAULT_WINDOW_MS
from ..sdk.factory import PROVIDERS


@dataclass(frozen=True)
class CacheSettings:
    """Response cache sizing."""
    max_size: int = DEFAULT_MAX_SIZE
    ttl_ms: int = DEFAULT_TTL_MS

    def __post_init__(self):
        if self.max_size < 1:
            raise ValueError("cache.max_size must be >= 1")
        if self.ttl_ms <= 0:
            raise ValueError("cache.ttl_ms must be > 0")


@dataclass(frozen=True)
class RetrySettings:
    """Retry budget and backoff timing."""
    max_retries: int = DEFAULT_RETRY_COUNT
    base_delay_ms: int = RETRY_BASE_DELAY_MS
    max_jitter_ms: int = RETRY_MAX_JITTER_MS

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("retry.max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("retry.base_delay_ms must be >= 0")
        if self.max_jitter_ms < 0:
            raise ValueError("retry.max_jitter_ms must be >= 0")


@dataclass(frozen=True)
class TrackingSettings:
    """Usage history retention."""
    history_size: int = DEFAULT_HISTORY_SIZE

    def __post_init__(self):
        if self.history_size < 1:
            raise ValueError("tracking.history_size must be >= 1")


@dataclass(frozen=True)
class RateLimitSettings:
    """Per-session request limit. Disabled unless ``enabled`` is set."""
    enabled: bool = False
    max_requests: int = DEFAULT_MAX_REQUESTS
    window_ms: int = DEFAULT_WINDOW_MS

    def __post_init__(self):
        if self.max_requests < 1:
            raise ValueError("rate_limit.max_requests must be >= 1")
        if self.window_ms <= 0:
            raise ValueError("rate_limit.window_ms must be > 0")


@dataclass(frozen=True)
class ProviderSettings:
    """Remote provider selection. ``None`` defers to the environment."""
    name: Optional[str] = None
    base_url: Optional[str] = None

    def __post_init__(self):
        if self.name is not None and self.name not in PROVIDERS:
            raise ValueError(f"provider.name must be one of: {list(PROVIDERS)}")


@dataclass(frozen=True)
class StudioConfig:
    """Complete studio configuration."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    pricing: Dict[str, ModelPricing] = field(default_factory=dict)


_SECTION_KEYS = {
    "cache": {"max_size", "ttl_ms"},
    "retry": {"max_retries", "base_delay_ms", "max_jitter_ms"},
    "tracking": {"history_size"},
    "rate_limit": {"enabled", "max_requests", "window_ms"},
    "provider": {"name", "base_url"},
}


def load_studio_config(path: str) -> StudioConfig:
    """Load and validate studio configuration from a YAML file.

    Unknown keys are rejected so a typo never silently falls back to a
    default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated StudioConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Studio config file not found: {path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return StudioConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = set(_SECTION_KEYS) | {"pricing"}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    cache_data = _section(raw_config, "cache")
    retry_data = _section(raw_config, "retry")
    tracking_data = _section(raw_config, "tracking")
    rate_limit_data = _section(raw_config, "rate_limit")
    provider_data = _section(raw_config, "provider")

    return StudioConfig(
        cache=CacheSettings(
            max_size=_integer(cache_data, "max_size", "cache", DEFAULT_MAX_SIZE),
            ttl_ms=_integer(cache_data, "ttl_ms", "cache", DEFAULT_TTL_MS),
        ),
        retry=RetrySettings(
            max_retries=_integer(retry_data, "max_retries", "retry", DEFAULT_RETRY_COUNT),
            base_delay_ms=_integer(retry_data, "base_delay_ms", "retry", RETRY_BASE_DELAY_MS),
            max_jitter_ms=_integer(retry_data, "max_jitter_ms", "retry", RETRY_MAX_JITTER_MS),
        ),
        tracking=TrackingSettings(
            history_size=_integer(tracking_data, "history_size", "tracking", DEFAULT_HISTORY_SIZE),
        ),
        rate_limit=RateLimitSettings(
            enabled=_boolean(rate_limit_data, "enabled", "rate_limit", False),
            max_requests=_integer(rate_limit_data, "max_requests", "rate_limit", DEFAULT_MAX_REQUESTS),
            window_ms=_integer(rate_limit_data, "window_ms", "rate_limit", DEFAULT_WINDOW_MS),
        ),
        provider=ProviderSettings(
            name=_string(provider_data, "name", "provider"),
            base_url=_string(provider_data, "base_url", "provider"),
        ),
        pricing=_parse_pricing(raw_config.get("pricing") or {}),
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _integer(data: Dict, key: str, path: str, default: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass; "yes" is not a size.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _boolean(data: Dict, key: str, path: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' in {path} must be true or false")
    return value


def _string(data: Dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value


def _parse_pricing(data: Any) -> Dict[str, ModelPricing]:
    """Parse per-model price overrides.

    Args:
        data: Mapping of model id to {input, output} USD per 1M tokens

    Returns:
        Model id to ModelPricing

    Raises:
        ValueError: If an entry is malformed or negative
    """
    if not isinstance(data, dict):
        raise ValueError("'pricing' must be a dictionary")

    overrides = {}
    for model, prices in data.items():
        path = f"pricing.{model}"
        if not isinstance(prices, dict):
            raise ValueError(f"'{path}' must be a dictionary")

        unknown_keys = set(prices.keys()) - {"input", "output"}
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
        for key in ("input", "output"):
            if key not in prices:
                raise ValueError(f"Missing required '{key}' in {path}")

        overrides[str(model)] = ModelPricing(
            input_cost_per_1m=_price(prices["input"], f"{path}.input"),
            output_cost_per_1m=_price(prices["output"], f"{path}.output"),
        )
    return overrides


def _price(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{path}' must be a number")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number")
    if not price.is_finite():
        raise ValueError(f"'{path}' must be a number")
    if price < 0:
        raise ValueError(f"'{path}' cannot be negative")
    return price
