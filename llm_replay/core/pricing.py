"""
Pricing calculations for replayed requests.

Costs are always derived from the pricing that is active at dispatch time,
so a replay answers "what would this cost today".
"""

from dataclasses import dataclass
from decimal import Decimal

from .token_counter import TokenUsage

TOKENS_PER_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a specific model."""
    model_id: str
    input_price_per_million: Decimal  # USD per 1M input tokens
    output_price_per_million: Decimal  # USD per 1M output tokens


@dataclass(frozen=True)
class CostBreakdown:
    """Input, output and total cost of one request, in fractional dollars."""
    input_cost_usd: float
    output_cost_usd: float
    total_cost_usd: float


def calculate_cost(pricing: ModelPricing, usage: TokenUsage) -> CostBreakdown:
    """Calculate the cost of a request from live pricing and actual usage.

    No rounding is applied: replay costs are usually fractions of a cent
    and the comparison needs them at full precision.

    Args:
        pricing: Currently active pricing for the replay model
        usage: Token usage reported by the provider

    Returns:
        CostBreakdown with input, output and total cost
    """
    # input_cost = (tokens / 1M) * price_per_million
    input_cost = (Decimal(usage.input_tokens) / TOKENS_PER_MILLION) * pricing.input_price_per_million
    output_cost = (Decimal(usage.output_tokens) / TOKENS_PER_MILLION) * pricing.output_price_per_million

    return CostBreakdown(
        input_cost_usd=float(input_cost),
        output_cost_usd=float(output_cost),
        total_cost_usd=float(input_cost + output_cost)
    )
