"""
Comparison between an original request and its replay.

The field names and the delta sign convention (replay minus original) are
consumed by the dashboard and must stay stable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..storage.models import RequestRecord


class DeltaDirection(Enum):
    """How a delta should be read by an operator."""
    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    NEUTRAL = "neutral"


def delta_direction(value: float, lower_is_better: bool) -> DeltaDirection:
    """Classify a delta.

    Cost and latency are lower-is-better; output tokens are read as
    higher-is-better.
    """
    if value == 0:
        return DeltaDirection.NEUTRAL
    if lower_is_better:
        return DeltaDirection.IMPROVEMENT if value < 0 else DeltaDirection.REGRESSION
    return DeltaDirection.IMPROVEMENT if value > 0 else DeltaDirection.REGRESSION


@dataclass(frozen=True)
class RequestSnapshot:
    """One side of a comparison."""
    id: Optional[str]
    request_id: str
    model: str
    input_tokens: int
    output_tokens: int
    total_cost_usd: float
    duration_ms: Optional[int]
    status: str
    response_content: Optional[str]

    @classmethod
    def from_record(cls, record: RequestRecord) -> "RequestSnapshot":
        return cls(
            id=record.id,
            request_id=record.request_id,
            model=record.model_identifier,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            total_cost_usd=float(record.total_cost_usd),
            duration_ms=record.duration_ms,
            status=record.status.value,
            response_content=record.metadata.response_content
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_cost_usd": self.total_cost_usd,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "response_content": self.response_content,
        }


@dataclass(frozen=True)
class ComparisonDeltas:
    """Signed differences, replay minus original."""
    cost_usd: float
    duration_ms: int
    input_tokens: int
    output_tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cost_usd": self.cost_usd,
            "duration_ms": self.duration_ms,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Side-by-side view of an original and its replay. Never persisted."""
    original: RequestSnapshot
    replay: RequestSnapshot
    deltas: ComparisonDeltas

    @property
    def response_matches(self) -> bool:
        """Exact string equality of both responses; False if either is missing."""
        if self.original.response_content is None or self.replay.response_content is None:
            return False
        return self.original.response_content == self.replay.response_content

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original.to_dict(),
            "replay": self.replay.to_dict(),
            "deltas": self.deltas.to_dict(),
        }


def build_comparison(original: RequestRecord, replay: RequestRecord) -> ComparisonResult:
    """Build the comparison for an (original, replay) pair.

    Missing durations count as 0 when computing the latency delta.

    Args:
        original: The historical record that was replayed
        replay: The newly stored replay record

    Returns:
        ComparisonResult with both projections and the deltas
    """
    original_side = RequestSnapshot.from_record(original)
    replay_side = RequestSnapshot.from_record(replay)

    deltas = ComparisonDeltas(
        cost_usd=replay_side.total_cost_usd - original_side.total_cost_usd,
        duration_ms=(replay_side.duration_ms or 0) - (original_side.duration_ms or 0),
        input_tokens=replay_side.input_tokens - original_side.input_tokens,
        output_tokens=replay_side.output_tokens - original_side.output_tokens
    )
    return ComparisonResult(original=original_side, replay=replay_side, deltas=deltas)
