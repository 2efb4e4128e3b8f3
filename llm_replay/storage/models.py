"""
Data models for storage layer.

Defines the request ledger entry, its metadata bag and the registry rows
the replay engine reads.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.pricing import ModelPricing


class RequestStatus(Enum):
    """Final status of a recorded request."""
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class RequestMetadata:
    """Structured form of a request's metadata bag.

    Every field is optional; ``None`` means the key was absent on the stored
    record. Keys this type does not know about are kept in ``extra`` so a
    round trip never drops data written by the live gateway.
    """
    messages: Optional[List[Dict[str, Any]]] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None
    response_format: Optional[Dict[str, Any]] = None
    response_content: Optional[str] = None
    replay_of: Optional[str] = None
    replay_of_request_id: Optional[str] = None
    model_override: Optional[str] = None
    route_id_override: Optional[str] = None
    placeholder_messages: Optional[bool] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RequestMetadata":
        """Build metadata from a stored map, tolerating missing or bad input."""
        if not isinstance(data, dict):
            return cls()
        known = {f.name for f in fields(cls) if f.name != "extra"}
        values = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(extra=extra, **values)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a map, omitting absent fields."""
        data = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                data[f.name] = value
        return data


@dataclass(frozen=True)
class RequestRecord:
    """Immutable audit entry for one inference request.

    Records are append-only: once written they are never updated, and a
    replay always produces a new record rather than touching the original.
    ``id`` is ``None`` until the store assigns one on append.
    """
    environment_id: str
    request_id: str
    model_identifier: str
    status: RequestStatus
    started_at: datetime
    id: Optional[str] = None
    route_id: Optional[str] = None
    model_id: Optional[str] = None
    provider_id: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost_usd: float = 0.0
    output_cost_usd: float = 0.0
    total_cost_usd: float = 0.0
    duration_ms: Optional[int] = None
    completed_at: Optional[datetime] = None
    is_streaming: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    metadata: RequestMetadata = field(default_factory=RequestMetadata)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "id": self.id,
            "environment_id": self.environment_id,
            "route_id": self.route_id,
            "request_id": self.request_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "model_id": self.model_id,
            "provider_id": self.provider_id,
            "model_identifier": self.model_identifier,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "input_cost_usd": self.input_cost_usd,
            "output_cost_usd": self.output_cost_usd,
            "total_cost_usd": self.total_cost_usd,
            "is_streaming": self.is_streaming,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class ProviderRecord:
    """Connection details for an upstream OpenAI-compatible provider."""
    id: str
    name: str
    provider_type: str
    base_url: str
    api_key: Optional[str] = None
    status: str = "active"


@dataclass(frozen=True)
class ModelRecord:
    """Registry entry for a model hosted by a provider."""
    id: str
    model_id: str
    provider_id: str
    input_price_per_m: Decimal
    output_price_per_m: Decimal
    is_active: bool = True
    display_name: Optional[str] = None

    @property
    def pricing(self) -> ModelPricing:
        """Pricing as currently stored in the registry."""
        return ModelPricing(
            model_id=self.model_id,
            input_price_per_million=self.input_price_per_m,
            output_price_per_million=self.output_price_per_m
        )
