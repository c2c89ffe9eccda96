"""
Prompt sanitization and input hygiene.

Flags prompt-injection phrasing, markup, SQL-like payloads and encoding
noise before a prompt reaches the model. Sanitizing never calls out to the
network; validate() turns violations into a ValidationError.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

from .errors import ValidationError
from .token_counter import CHARS_PER_TOKEN

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 10000

SUSPICIOUS_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|prior|above)\s+instructions?", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|prior|above)\s+(instructions?|prompts?)", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all|instructions?)", re.IGNORECASE),
    re.compile(r"system:\s*you\s+are\s+now", re.IGNORECASE),
    re.compile(r"new\s+instructions?:\s*", re.IGNORECASE),
    re.compile(r"override\s+(system|instructions?|rules?)", re.IGNORECASE),
    re.compile(r"act\s+as\s+(if\s+)?you('re|\s+are)\s+(a\s+)?(different|new)", re.IGNORECASE),
    re.compile(r"pretend\s+(that\s+)?you('re|\s+are)", re.IGNORECASE),
    re.compile(r"<\s*script[\s>]", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"on(load|error|click|mouse)", re.IGNORECASE),
]

SQL_PATTERNS = [
    re.compile(r"'\s*(OR|AND)\s*'?\d*'?\s*=\s*'?\d*'?", re.IGNORECASE),
    re.compile(r"UNION\s+SELECT", re.IGNORECASE),
    re.compile(r"DROP\s+TABLE", re.IGNORECASE),
    re.compile(r"DELETE\s+FROM", re.IGNORECASE),
]

EXCESSIVE_SPECIAL_CHARS = re.compile(r"[^\w\s.,!?;:()\-'\"]{10,}")

_IMAGE_DATA_URI = re.compile(r"^data:image/(png|jpeg|jpg|gif|webp|heic);base64,", re.IGNORECASE)


@dataclass(frozen=True)
class SanitizationResult:
    """Outcome of sanitizing a prompt."""
    sanitized: str
    violations: List[str] = field(default_factory=list)

    @property
    def safe(self) -> bool:
        return not self.violations


class PromptSanitizer:
    """Stateless prompt checks."""

    def __init__(self, max_prompt_length: int = MAX_PROMPT_LENGTH):
        if max_prompt_length < 1:
            raise ValueError("max_prompt_length must be >= 1")
        self.max_prompt_length = max_prompt_length

    def sanitize(self, prompt: str) -> SanitizationResult:
        """Clean a prompt and collect every rule it violates.

        Over-long prompts are truncated, runs of special characters are
        collapsed to ``...`` and null bytes are removed. Injection and SQL
        patterns are reported but left in place.
        """
        violations = []
        sanitized = prompt

        if len(sanitized) > self.max_prompt_length:
            violations.append(f"Prompt exceeds maximum length ({self.max_prompt_length} characters)")
            sanitized = sanitized[:self.max_prompt_length]

        for pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(sanitized):
                violations.append(f"Suspicious pattern detected: {pattern.pattern}")

        for pattern in SQL_PATTERNS:
            if pattern.search(sanitized):
                violations.append(f"SQL injection pattern detected: {pattern.pattern}")

        if EXCESSIVE_SPECIAL_CHARS.search(sanitized):
            violations.append("Excessive special characters detected")
            sanitized = EXCESSIVE_SPECIAL_CHARS.sub("...", sanitized)

        if "\0" in sanitized:
            violations.append("Null bytes detected and removed")
            sanitized = sanitized.replace("\0", "")

        sanitized = sanitized.strip()

        if violations:
            logger.warning("Prompt sanitization violations: %s", ", ".join(violations))

        return SanitizationResult(sanitized=sanitized, violations=violations)

    def validate(self, prompt: str) -> str:
        """Return the sanitized prompt, or raise if any rule was violated.

        Raises:
            ValidationError: With the violations under the ``prompt`` field
        """
        result = self.sanitize(prompt)
        if not result.safe:
            raise ValidationError(
                "Prompt contains potentially unsafe content",
                {"prompt": list(result.violations)},
            )
        return result.sanitized

    @staticmethod
    def truncate_to_tokens(prompt: str, max_tokens: int) -> str:
        """Truncate to an approximate token budget.

        Cuts at the last word boundary when one falls within the final 20%
        of the allowed length, then appends ``...``.
        """
        max_chars = max_tokens * CHARS_PER_TOKEN
        if len(prompt) <= max_chars:
            return prompt

        truncated = prompt[:max_chars]
        last_space = truncated.rfind(" ")
        if last_space > max_chars * 0.8:
            truncated = truncated[:last_space]
        return truncated + "..."

    @staticmethod
    def validate_image_input(payload: str) -> bool:
        """Check that a payload is an image data URI with no embedded script."""
        if not _IMAGE_DATA_URI.match(payload):
            logger.warning("Invalid image format detected")
            return False

        body = payload[payload.index(",") + 1:]
        if "<script" in body or "javascript:" in body:
            logger.warning("Suspicious content in image data")
            return False

        return True
