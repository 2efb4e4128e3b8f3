"""
Replay orchestration.

Re-executes a logged request against a live provider, records the attempt
as a new request and compares it with the original.

Sequence:
1. Load the original within its environment scope
2. Resolve the replay model, then its provider
3. Rebuild the payload and dispatch it once
4. Price the outcome with current pricing and append the replay record
5. Build the comparison

Steps 1 and 2 can fail without side effects. Once dispatch starts, the
attempt is always recorded, whatever the provider did.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from ..sdk.openai_client import DispatchResult, ProviderDispatcher
from ..storage.models import (
    ModelRecord,
    ProviderRecord,
    RequestMetadata,
    RequestRecord,
)
from ..storage.repository import ModelRegistry, RequestRepository
from .comparison import ComparisonResult, build_comparison
from .errors import BadRequestError, NotFoundError, StorageError
from .payload import ChatPayload, reconstruct_payload
from .pricing import calculate_cost

logger = structlog.get_logger(__name__)


class ReplayState(Enum):
    """Stages of a single replay call."""
    LOADING_ORIGINAL = "loading_original"
    RESOLVING_MODEL = "resolving_model"
    DISPATCHING = "dispatching"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ReplayOptions:
    """Optional substitutions for a replay.

    An empty ``model_override`` counts as no override: the replay runs
    against the original model and the override is not recorded.
    """
    model_override: Optional[str] = None
    route_id_override: Optional[str] = None

    def __post_init__(self):
        """Validate the route override as a UUID."""
        if not self.model_override:
            object.__setattr__(self, "model_override", None)
        if self.route_id_override is not None:
            try:
                uuid.UUID(self.route_id_override)
            except ValueError:
                raise BadRequestError("route_id_override must be a valid UUID")


@dataclass(frozen=True)
class ReplayOutcome:
    """The stored replay record together with its comparison."""
    record: RequestRecord
    comparison: ComparisonResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.record.to_dict(),
            "comparison": self.comparison.to_dict(),
        }


class ReplayEngine:
    """Replays historical requests and compares them with the original.

    The engine keeps no per-call state, so concurrent replays, including
    repeated replays of the same original, are independent of each other.
    """

    def __init__(
        self,
        requests: RequestRepository,
        registry: ModelRegistry,
        dispatcher: ProviderDispatcher
    ):
        """Initialize the engine with its collaborators.

        Args:
            requests: Request store the original is read from and the replay appended to
            registry: Model/provider registry
            dispatcher: Outbound provider dispatcher
        """
        self.requests = requests
        self.registry = registry
        self.dispatcher = dispatcher

    def replay(
        self,
        record_id: str,
        environment_id: str,
        options: Optional[ReplayOptions] = None
    ) -> ReplayOutcome:
        """Replay a logged request.

        Args:
            record_id: Internal id of the original record
            environment_id: Environment the original must belong to
            options: Model and route overrides

        Returns:
            ReplayOutcome with the new record and the comparison

        Raises:
            NotFoundError: If the original is absent or outside the environment
            BadRequestError: If the replay model or its provider cannot be resolved
            StorageError: If the replay record could not be appended
        """
        options = options or ReplayOptions()
        log = logger.bind(original_id=record_id, environment_id=environment_id)

        _transition(log, ReplayState.LOADING_ORIGINAL)
        original = self.requests.get(record_id, environment_id)
        if original is None:
            _transition(log, ReplayState.FAILED, reason="original_not_found")
            raise NotFoundError("Request")

        _transition(log, ReplayState.RESOLVING_MODEL)
        replay_model = options.model_override or original.model_identifier
        try:
            model, provider = self._resolve(replay_model)
        except BadRequestError as e:
            _transition(log, ReplayState.FAILED, reason=e.message)
            raise

        payload = reconstruct_payload(
            original.metadata,
            original.model_identifier,
            model_override=options.model_override
        )

        _transition(log, ReplayState.DISPATCHING, model=replay_model, provider=provider.name)
        result = self.dispatcher.dispatch(provider, payload)

        _transition(log, ReplayState.RECORDING, status=result.status.value)
        record = self._build_record(original, options, model, provider, payload, result)
        try:
            stored = self.requests.append(record)
        except StorageError:
            log.error("replay_storage_failed", request_id=record.request_id)
            raise

        log.info(
            "replay_recorded",
            replay_id=stored.id,
            request_id=stored.request_id,
            status=stored.status.value,
        )
        comparison = build_comparison(original, stored)
        _transition(log, ReplayState.DONE)
        return ReplayOutcome(record=stored, comparison=comparison)

    def _resolve(self, replay_model: str):
        """Resolve the model, then its provider, as two separate lookups."""
        model = self.registry.get_active_model(replay_model)
        if model is None:
            raise BadRequestError(f'Model "{replay_model}" not found or is not active')
        provider = self.registry.get_provider(model.provider_id)
        if provider is None:
            raise BadRequestError(f'Provider for model "{replay_model}" not found')
        return model, provider

    def _build_record(
        self,
        original: RequestRecord,
        options: ReplayOptions,
        model: ModelRecord,
        provider: ProviderRecord,
        payload: ChatPayload,
        result: DispatchResult
    ) -> RequestRecord:
        cost = calculate_cost(model.pricing, result.usage)
        metadata = RequestMetadata(
            messages=payload.messages,
            response_content=result.response_content,
            replay_of=original.id,
            replay_of_request_id=original.request_id,
            model_override=options.model_override,
            route_id_override=options.route_id_override,
            placeholder_messages=True if payload.used_placeholder else None
        )
        return RequestRecord(
            environment_id=original.environment_id,
            route_id=options.route_id_override or original.route_id,
            request_id=f"replay_{uuid.uuid4()}",
            started_at=result.started_at,
            completed_at=result.completed_at,
            duration_ms=result.duration_ms,
            status=result.status,
            model_id=model.id,
            provider_id=provider.id,
            model_identifier=model.model_id,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            input_cost_usd=cost.input_cost_usd,
            output_cost_usd=cost.output_cost_usd,
            total_cost_usd=cost.total_cost_usd,
            is_streaming=False,
            error_code=result.error_code,
            error_message=result.error_message,
            metadata=metadata
        )


def _transition(log, state: ReplayState, **context) -> None:
    log.debug("replay_state", state=state.value, **context)
