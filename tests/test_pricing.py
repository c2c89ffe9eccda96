"""
Unit tests for token estimation and pricing calculations.

Tests the character heuristic, table lookup with fallback, and cost math.
"""

from decimal import Decimal

import pytest

from genstudio.core.models import ModelId
from genstudio.core.pricing import (
    DEFAULT_PRICING,
    PRICING_TABLE,
    ModelPricing,
    calculate_cost,
)
from genstudio.core.token_counter import TokenUsage, estimate_tokens, estimate_usage


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed correctly."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        assert usage.total_tokens == 150

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError):
            TokenUsage(prompt_tokens=-1, completion_tokens=0)


class TestEstimateTokens:
    """Test the four-characters-per-token heuristic."""

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        (None, 0),
        ("abc", 1),
        ("abcd", 1),
        ("abcde", 2),
        ("x" * 400, 100),
    ])
    def test_ceiling_of_quarter_length(self, text, expected):
        assert estimate_tokens(text) == expected

    def test_estimate_usage_without_response(self):
        usage = estimate_usage("abcdefgh", None)

        assert usage.prompt_tokens == 2
        assert usage.completion_tokens == 0


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for a listed model."""
        pricing = PRICING_TABLE.get_pricing("gemini-3-pro-preview")
        assert pricing.input_cost_per_1m == Decimal("1.25")
        assert pricing.output_cost_per_1m == Decimal("5.00")

    def test_enum_lookup(self):
        assert PRICING_TABLE.get_pricing(ModelId.GEMINI_3_PRO) == \
            PRICING_TABLE.get_pricing("gemini-3-pro-preview")

    def test_unknown_model_uses_default_tier(self):
        assert PRICING_TABLE.get_pricing("unknown-model") == DEFAULT_PRICING

    def test_every_model_is_priced(self):
        for model in ModelId:
            assert model.value in PRICING_TABLE.prices

    def test_overrides_return_new_table(self):
        custom = ModelPricing(input_cost_per_1m=Decimal("9"), output_cost_per_1m=Decimal("9"))

        table = PRICING_TABLE.with_overrides({ModelId.GEMINI_3_FLASH: custom})

        assert table.get_pricing("gemini-3-flash-preview") == custom
        assert PRICING_TABLE.get_pricing("gemini-3-flash-preview") != custom

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            ModelPricing(input_cost_per_1m=Decimal("-1"), output_cost_per_1m=Decimal("0"))


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def test_exact_cost_flash(self):
        """One million tokens each way costs the list price."""
        usage = TokenUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000)
        # 0.075 + 0.30
        assert calculate_cost("gemini-3-flash-preview", usage) == pytest.approx(0.375)

    def test_small_request_not_rounded_away(self):
        usage = TokenUsage(prompt_tokens=3, completion_tokens=0)
        # 3 / 1M * 0.075
        assert calculate_cost("gemini-3-flash-preview", usage) == pytest.approx(2.25e-7)

    def test_zero_tokens(self):
        usage = TokenUsage(prompt_tokens=0, completion_tokens=0)
        assert calculate_cost("gemini-3-pro-preview", usage) == 0.0

    def test_unknown_model_cost(self):
        usage = TokenUsage(prompt_tokens=1_000_000, completion_tokens=0)
        assert calculate_cost("mystery", usage) == pytest.approx(0.10)
