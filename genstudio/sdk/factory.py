"""
Client factory -- builds a fresh remote client on every call.

Credentials and endpoint settings are read from the environment at call
time, so a key rotated mid-session is picked up by the next attempt.

Supported providers:

  gemini   Google Gen AI SDK (default)
           key: API_KEY or GEMINI_API_KEY
  openai   Any OpenAI-compatible Chat Completions endpoint
           key: API_KEY or OPENAI_API_KEY
           base URL: GENSTUDIO_BASE_URL (defaults to Gemini's
           OpenAI-compatible endpoint)

The provider is chosen with GENSTUDIO_PROVIDER unless passed explicitly.
"""

import os
from typing import Callable, Dict, Optional, Tuple

from ..core.errors import AuthenticationError
from .base import RemoteGenerationClient

ClientFactory = Callable[[], RemoteGenerationClient]

PROVIDERS = ("gemini", "openai")

_KEY_VARIABLES: Dict[str, Tuple[str, ...]] = {
    "gemini": ("API_KEY", "GEMINI_API_KEY"),
    "openai": ("API_KEY", "OPENAI_API_KEY"),
}


def create_client_factory(
    provider: Optional[str] = None,
    base_url: Optional[str] = None,
) -> ClientFactory:
    """Return a zero-argument factory for the configured provider.

    Args:
        provider: Override for GENSTUDIO_PROVIDER
        base_url: Override for GENSTUDIO_BASE_URL (openai provider only)

    Raises:
        ValueError: If the provider name is unknown
    """
    name = (provider or os.environ.get("GENSTUDIO_PROVIDER", "gemini")).lower()
    if name not in PROVIDERS:
        raise ValueError(f"Unknown provider '{name}'. Available: {', '.join(PROVIDERS)}")

    def _factory() -> RemoteGenerationClient:
        api_key = _read_api_key(name)
        if name == "openai":
            from .openai_client import OpenAICompatibleClient

            return OpenAICompatibleClient(
                api_key=api_key,
                base_url=base_url or os.environ.get("GENSTUDIO_BASE_URL") or None,
            )

        from .gemini_client import GeminiClient

        return GeminiClient(api_key=api_key)

    return _factory


def _read_api_key(provider: str) -> str:
    for variable in _KEY_VARIABLES[provider]:
        value = os.environ.get(variable, "").strip()
        if value:
            return value
    raise AuthenticationError(
        f"API_KEY_MISSING: Set {' or '.join(_KEY_VARIABLES[provider])} in your environment."
    )
