"""
Error taxonomy and failure classification.

Collapses arbitrary provider, transport and SDK failures into a closed set
of typed application errors. Recoverability is a property of the error
variant so the retry loop never has to inspect raw messages.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import openai


class ErrorCode(Enum):
    """Machine-readable error categories."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    SAFETY_ERROR = "SAFETY_ERROR"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"


TRANSIENT_STATUS_CODES = frozenset({503, 504})

_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "resource_exhausted", "quota")
_SAFETY_MARKERS = ("safety", "blocked", "content policy", "prohibited")
_OVERLOAD_MARKERS = ("overloaded", "capacity", "unavailable")

# SDK transport failures. Timeout types subclass the connection types.
_TIMEOUT_ERRORS = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException, openai.APITimeoutError)
_CONNECTION_ERRORS = (ConnectionError, httpx.TransportError, openai.APIConnectionError)


class AppError(Exception):
    """Base class for every failure surfaced by the orchestration layer.

    Attributes:
        message: Human-readable message suitable for direct display
        code: Error category
        status_code: HTTP-like status code
        context: Optional structured details (retry hints, field errors)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.context = context or {}

    @property
    def title(self) -> str:
        """Display title derived from the error code, e.g. 'Rate Limited'."""
        return " ".join(word.capitalize() for word in self.code.value.split("_"))

    @property
    def is_transient(self) -> bool:
        """Whether a retry has a reasonable chance of succeeding."""
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ValidationError(AppError):
    """Malformed caller input. Never retried."""

    def __init__(self, message: str, fields: Optional[Dict[str, List[str]]] = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, {"fields": fields or {}})

    @property
    def fields(self) -> Dict[str, List[str]]:
        return self.context["fields"]


class AuthenticationError(AppError):
    """Missing or rejected credentials. Never retried."""

    def __init__(self, message: str = "Security context negotiation failed."):
        super().__init__(message, ErrorCode.AUTHENTICATION_ERROR, 401)


class RateLimitError(AppError):
    """Provider throughput exceeded. Retried with backoff."""

    def __init__(
        self,
        message: str = "Generation throughput exceeded. System cooling down.",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, ErrorCode.RATE_LIMITED, 429, {"retry_after": retry_after})

    @property
    def retry_after(self) -> Optional[float]:
        return self.context["retry_after"]

    @property
    def is_transient(self) -> bool:
        return True


class SafetyError(AppError):
    """Provider content-policy block.

    The message keeps the provider text verbatim because it usually tells
    the end user how to rephrase.
    """

    def __init__(self, message: str = "Pipeline interrupted by deep safety filters."):
        super().__init__(message, ErrorCode.SAFETY_ERROR, 400)


class ApiError(AppError):
    """Catch-all provider or pipeline failure.

    Only 503/504 are transient; every other status is terminal.
    """

    def __init__(self, message: str, status_code: int = 500, code: ErrorCode = ErrorCode.API_ERROR):
        super().__init__(message, code, status_code)

    @property
    def is_transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUS_CODES


class NetworkError(ApiError):
    """Transport failure or timeout before a provider answer arrived."""

    def __init__(self, message: str, timeout: bool = False):
        super().__init__(
            message,
            504 if timeout else 503,
            ErrorCode.TIMEOUT if timeout else ErrorCode.NETWORK_ERROR,
        )


def classify_error(raw: Any) -> AppError:
    """Classify a raw failure into exactly one AppError variant.

    Rules are evaluated in priority order:
    1. AppError instances pass through unchanged
    2. 429 or rate-limit wording -> RateLimitError
    3. 401/403 -> AuthenticationError
    4. safety/blocked/policy wording -> SafetyError
    5. timeouts and connection failures -> NetworkError
    6. 503/504 or overload wording -> transient ApiError
    7. anything else -> ApiError with the original status or 500

    Args:
        raw: Exception or arbitrary value of unknown shape

    Returns:
        Typed application error; this function never raises
    """
    if isinstance(raw, AppError):
        return raw

    message = _extract_message(raw)
    status = _extract_status(raw)
    lower_msg = message.lower()
    status_text = getattr(raw, "status", None)
    if isinstance(status_text, str):
        lower_msg = f"{status_text.lower()} {lower_msg}"

    if status == 429 or any(marker in lower_msg for marker in _RATE_LIMIT_MARKERS):
        return RateLimitError(retry_after=_extract_retry_after(raw))

    if status in (401, 403):
        if "not found" in lower_msg or "billing" in lower_msg:
            return AuthenticationError(f"ACCOUNT_ERROR: {message}")
        return AuthenticationError()

    if any(marker in lower_msg for marker in _SAFETY_MARKERS):
        return SafetyError(f"SAFETY_BLOCK: {message}")

    if isinstance(raw, _TIMEOUT_ERRORS):
        return NetworkError(f"REQUEST_TIMEOUT: {message}", timeout=True)
    if isinstance(raw, _CONNECTION_ERRORS):
        return NetworkError(f"NETWORK_FAILURE: {message}")

    if status in TRANSIENT_STATUS_CODES or any(marker in lower_msg for marker in _OVERLOAD_MARKERS):
        return ApiError(f"SYSTEM_OVERLOAD: {message}", status if status == 504 else 503)

    return ApiError(message, status or 500)


def _extract_message(raw: Any) -> str:
    message = getattr(raw, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(raw)
    if text:
        return text
    return type(raw).__name__


def _extract_status(raw: Any) -> Optional[int]:
    for attr in ("status_code", "code", "status"):
        value = getattr(raw, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(raw, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _extract_retry_after(raw: Any) -> Optional[float]:
    value = getattr(raw, "retry_after", None)
    if value is None:
        headers = getattr(getattr(raw, "response", None), "headers", None)
        try:
            if headers is not None:
                value = headers.get("retry-after") or headers.get("Retry-After")
        except AttributeError:
            value = None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
