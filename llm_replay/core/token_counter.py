"""
Token usage tracking.

Holds the token counts reported by a provider for a single completion.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by a provider.

    Counts come straight from the provider's ``usage`` block; nothing is
    estimated here.
    """
    input_tokens: int
    output_tokens: int

    def __post_init__(self):
        """Reject negative token counts."""
        if self.input_tokens < 0:
            raise ValueError("input_tokens must be >= 0")
        if self.output_tokens < 0:
            raise ValueError("output_tokens must be >= 0")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens
