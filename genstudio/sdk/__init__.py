"""
Remote generation clients for GenStudio.

Provider adapters behind a single async contract, plus a factory that
builds a fresh client from the environment on every call.
"""

from .base import (
    ContentPart,
    GenerationSettings,
    GroundingChunk,
    InlineData,
    RemoteCandidate,
    RemoteGenerationClient,
    RemoteResponse,
)
from .factory import PROVIDERS, ClientFactory, create_client_factory

__all__ = [
    "ClientFactory",
    "ContentPart",
    "GenerationSettings",
    "GroundingChunk",
    "InlineData",
    "PROVIDERS",
    "RemoteCandidate",
    "RemoteGenerationClient",
    "RemoteResponse",
    "create_client_factory",
]
