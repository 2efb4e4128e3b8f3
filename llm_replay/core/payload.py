"""
Chat-completion payload reconstruction.

Turns the metadata stored on a historical request back into the payload
that is sent to the provider on replay.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from ..storage.models import RequestMetadata

logger = structlog.get_logger(__name__)

# Sent when the original record carries no messages at all
PLACEHOLDER_MESSAGES = ({"role": "user", "content": "Hello"},)

# Generation parameters carried over only when present on the original
OPTIONAL_PARAMETERS = (
    "temperature",
    "max_tokens",
    "top_p",
    "tools",
    "tool_choice",
    "response_format",
)


@dataclass(frozen=True)
class ChatPayload:
    """Canonical chat-completion request body for a replay.

    ``stream`` is always False: a replay needs one final usage summary,
    not incremental chunks.
    """
    model: str
    messages: List[Dict[str, Any]]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None
    response_format: Optional[Dict[str, Any]] = None
    used_placeholder: bool = False

    @property
    def stream(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Request body, with absent optional parameters left out."""
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "stream": self.stream,
        }
        for name in OPTIONAL_PARAMETERS:
            value = getattr(self, name)
            if value is not None:
                body[name] = value
        return body


def reconstruct_payload(
    metadata: RequestMetadata,
    model_identifier: str,
    model_override: Optional[str] = None
) -> ChatPayload:
    """Rebuild the outbound payload from an original request's metadata.

    Optional generation parameters are copied only when they were present
    on the original; nothing is defaulted or altered. If the original has
    no messages, a single placeholder user message is sent instead of
    failing, and ``used_placeholder`` is set so the replay record can say so.

    Args:
        metadata: Metadata of the original request
        model_identifier: Model the original request ran against
        model_override: Model to replay against instead, if any

    Returns:
        The payload to dispatch
    """
    model = model_override or model_identifier
    used_placeholder = metadata.messages is None
    if used_placeholder:
        logger.warning("replay_placeholder_messages", model=model)
        messages = [dict(message) for message in PLACEHOLDER_MESSAGES]
    else:
        messages = metadata.messages

    parameters = {name: getattr(metadata, name) for name in OPTIONAL_PARAMETERS}
    return ChatPayload(
        model=model,
        messages=messages,
        used_placeholder=used_placeholder,
        **parameters
    )
