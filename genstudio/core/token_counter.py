"""
Token counting and usage tracking.

Token counts are estimated from character length. No provider tokenizer is
consulted, so every figure derived from these counts is an approximation.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

# Rough average for English text across current model families.
CHARS_PER_TOKEN = 4

TokenEstimator = Callable[[str], int]


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation."""
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        if self.prompt_tokens < 0:
            raise ValueError("prompt_tokens cannot be negative")
        if self.completion_tokens < 0:
            raise ValueError("completion_tokens cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def estimate_tokens(text: Optional[str]) -> int:
    """Approximate token count as ceil(characters / 4).

    Args:
        text: Text to measure; None counts as zero tokens

    Returns:
        Estimated token count
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_usage(
    prompt: str,
    response: Optional[str],
    estimator: TokenEstimator = estimate_tokens,
) -> TokenUsage:
    """Estimate prompt and completion tokens for one request."""
    return TokenUsage(
        prompt_tokens=estimator(prompt or ""),
        completion_tokens=estimator(response) if response else 0,
    )
