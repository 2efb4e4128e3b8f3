"""
Unit tests for pricing calculations.

Tests per-million cost accuracy and token usage validation.
"""

import pytest
from decimal import Decimal

from llm_replay.core.pricing import ModelPricing, calculate_cost
from llm_replay.core.token_counter import TokenUsage


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed correctly."""
        usage = TokenUsage(input_tokens=100, output_tokens=50)
        assert usage.total_tokens == 150

    def test_zero_tokens(self):
        """Verify zero token handling."""
        usage = TokenUsage(input_tokens=0, output_tokens=0)
        assert usage.total_tokens == 0

    def test_negative_tokens_rejected(self):
        """Verify negative counts are refused."""
        with pytest.raises(ValueError, match="input_tokens"):
            TokenUsage(input_tokens=-1, output_tokens=0)
        with pytest.raises(ValueError, match="output_tokens"):
            TokenUsage(input_tokens=0, output_tokens=-5)


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def setup_method(self):
        self.pricing = ModelPricing(
            model_id="gpt-4o",
            input_price_per_million=Decimal("2.50"),
            output_price_per_million=Decimal("10.00")
        )

    def test_exact_cost_per_million(self):
        """One million tokens each side costs exactly the listed prices."""
        usage = TokenUsage(input_tokens=1_000_000, output_tokens=1_000_000)
        cost = calculate_cost(self.pricing, usage)
        assert cost.input_cost_usd == 2.50
        assert cost.output_cost_usd == 10.00
        assert cost.total_cost_usd == 12.50

    def test_small_request_keeps_full_precision(self):
        """Fractions of a cent are not rounded away."""
        usage = TokenUsage(input_tokens=100, output_tokens=50)
        cost = calculate_cost(self.pricing, usage)
        # 100/1M * 2.50 = 0.00025; 50/1M * 10.00 = 0.0005
        assert cost.input_cost_usd == pytest.approx(0.00025)
        assert cost.output_cost_usd == pytest.approx(0.0005)
        assert cost.total_cost_usd == pytest.approx(0.00075)

    def test_total_is_sum_of_parts(self):
        """total = input + output for arbitrary counts and prices."""
        pricing = ModelPricing(
            model_id="custom",
            input_price_per_million=Decimal("0.137"),
            output_price_per_million=Decimal("3.91")
        )
        for input_tokens, output_tokens in [(1, 1), (12345, 678), (999_999, 3)]:
            cost = calculate_cost(pricing, TokenUsage(input_tokens, output_tokens))
            assert cost.total_cost_usd == pytest.approx(cost.input_cost_usd + cost.output_cost_usd)

    def test_zero_tokens_cost_nothing(self):
        """A failed replay with no usage costs nothing."""
        cost = calculate_cost(self.pricing, TokenUsage(input_tokens=0, output_tokens=0))
        assert cost.total_cost_usd == 0.0

    def test_zero_price_model(self):
        """Free models (e.g. local) cost nothing regardless of usage."""
        pricing = ModelPricing(
            model_id="llama3",
            input_price_per_million=Decimal("0"),
            output_price_per_million=Decimal("0")
        )
        cost = calculate_cost(pricing, TokenUsage(input_tokens=5000, output_tokens=5000))
        assert cost.total_cost_usd == 0.0
