"""
Pricing calculations and rate management.

Prices are hand-maintained approximations per million tokens and are not
provider billing data. Unknown models are charged at a default tier instead
of failing the request.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping

from .token_counter import TokenUsage

ONE_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_cost_per_1m: Decimal  # Cost per 1M input tokens
    output_cost_per_1m: Decimal  # Cost per 1M output tokens

    def __post_init__(self):
        if self.input_cost_per_1m < 0:
            raise ValueError("input_cost_per_1m cannot be negative")
        if self.output_cost_per_1m < 0:
            raise ValueError("output_cost_per_1m cannot be negative")


DEFAULT_PRICING = ModelPricing(
    input_cost_per_1m=Decimal("0.10"),
    output_cost_per_1m=Decimal("0.40"),
)


@dataclass(frozen=True)
class PricingTable:
    """Pricing table with a fallback tier for unlisted models."""
    prices: Dict[str, ModelPricing]
    default: ModelPricing = field(default=DEFAULT_PRICING)

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model, falling back to the default tier.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model
        """
        return self.prices.get(_model_key(model), self.default)

    def with_overrides(self, overrides: Mapping[str, ModelPricing]) -> "PricingTable":
        """Return a new table with the given model prices replaced or added."""
        merged = dict(self.prices)
        merged.update({_model_key(name): pricing for name, pricing in overrides.items()})
        return PricingTable(prices=merged, default=self.default)


# Approximate list prices (USD per 1M tokens), January 2026
PRICING_TABLE = PricingTable({
    "gemini-3-flash-preview": ModelPricing(
        input_cost_per_1m=Decimal("0.075"),
        output_cost_per_1m=Decimal("0.30")
    ),
    "gemini-3-pro-preview": ModelPricing(
        input_cost_per_1m=Decimal("1.25"),
        output_cost_per_1m=Decimal("5.00")
    ),
    "gemini-2.5-flash-image": ModelPricing(
        input_cost_per_1m=Decimal("0.075"),
        output_cost_per_1m=Decimal("0.30")
    ),
    "gemini-3-pro-image-preview": ModelPricing(
        input_cost_per_1m=Decimal("1.25"),
        output_cost_per_1m=Decimal("5.00")
    ),
    "gemini-2.5-flash-lite-latest": ModelPricing(
        input_cost_per_1m=Decimal("0.038"),
        output_cost_per_1m=Decimal("0.15")
    ),
    "veo-3.1-fast-generate-preview": ModelPricing(
        input_cost_per_1m=Decimal("0.10"),
        output_cost_per_1m=Decimal("0.40")
    ),
})


def calculate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate estimated cost for model usage.

    cost = input_tokens / 1M * input_price + output_tokens / 1M * output_price

    Costs for a single request are fractions of a cent, so no rounding is
    applied.

    Args:
        model: Model identifier
        usage: Token usage data
        table: Pricing table to use

    Returns:
        Estimated cost in USD
    """
    pricing = table.get_pricing(model)
    input_cost = (Decimal(usage.prompt_tokens) / ONE_MILLION) * pricing.input_cost_per_1m
    output_cost = (Decimal(usage.completion_tokens) / ONE_MILLION) * pricing.output_cost_per_1m
    return float(input_cost + output_cost)


def _model_key(model) -> str:
    return getattr(model, "value", model)
