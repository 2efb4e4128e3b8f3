"""
Provider dispatcher for replays.

Sends one chat completion to an OpenAI-compatible provider and normalizes
every outcome into a DispatchResult.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
import openai
import structlog
from openai import OpenAI

from ..config.loader import DispatchPolicy, ReplayConfig
from ..core.payload import ChatPayload
from ..core.token_counter import TokenUsage
from ..storage.models import ProviderRecord, RequestStatus

logger = structlog.get_logger(__name__)

NETWORK_ERROR = "network_error"


def provider_error_code(status_code: int) -> str:
    """Error code recorded for a non-2xx provider response."""
    return f"provider_error_{status_code}"


@dataclass(frozen=True)
class DispatchResult:
    """Normalized outcome of a single provider call."""
    status: RequestStatus
    usage: TokenUsage
    duration_ms: int
    started_at: datetime
    response_content: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def completed_at(self) -> datetime:
        return self.started_at + timedelta(milliseconds=self.duration_ms)

    @property
    def succeeded(self) -> bool:
        return self.status == RequestStatus.SUCCESS


class ProviderDispatcher:
    """Issues replay calls against OpenAI-compatible providers.

    Each dispatch makes exactly the attempts allowed by the provider's
    DispatchPolicy (one by default) and never raises: provider errors and
    transport failures come back as error results.
    """

    def __init__(
        self,
        config: Optional[ReplayConfig] = None,
        http_client: Optional[httpx.Client] = None
    ):
        """Initialize the dispatcher.

        Args:
            config: Replay configuration supplying dispatch policies
            http_client: Optional httpx client shared by every call
        """
        self.config = config or ReplayConfig()
        self.http_client = http_client

    def _build_client(self, provider: ProviderRecord, policy: DispatchPolicy) -> OpenAI:
        return OpenAI(
            base_url=provider.base_url.rstrip("/"),
            api_key=provider.api_key or "",
            timeout=policy.timeout_seconds,
            max_retries=policy.max_retries,
            http_client=self.http_client
        )

    def dispatch(self, provider: ProviderRecord, payload: ChatPayload) -> DispatchResult:
        """Send the payload to ``{provider.base_url}/chat/completions``.

        Duration covers the call itself, up to the fully consumed response
        body or the caught exception. A 2xx body that is not JSON, or whose
        usage counts are malformed, is reported as a network error.

        Args:
            provider: Resolved provider connection details
            payload: Reconstructed chat-completion payload

        Returns:
            DispatchResult describing success, provider error or network error
        """
        policy = self.config.policy_for(provider)
        started_at = datetime.now()
        start = time.perf_counter()
        try:
            client = self._build_client(provider, policy)
            response = client.chat.completions.create(**payload.to_dict())
            if isinstance(response, str):
                # The SDK hands back raw text when a 2xx body is not JSON
                raise ValueError("Provider returned a non-JSON response body")
            usage = _extract_usage(response)
            content = _extract_content(response)
        except openai.APIStatusError as e:
            duration_ms = _elapsed_ms(start)
            code = provider_error_code(e.status_code)
            logger.warning(
                "replay_dispatch_failed",
                provider=provider.name,
                model=payload.model,
                error_code=code,
            )
            return DispatchResult(
                status=RequestStatus.ERROR,
                usage=TokenUsage(input_tokens=0, output_tokens=0),
                duration_ms=duration_ms,
                started_at=started_at,
                error_code=code,
                error_message=e.response.text
            )
        except Exception as e:
            duration_ms = _elapsed_ms(start)
            logger.warning(
                "replay_dispatch_failed",
                provider=provider.name,
                model=payload.model,
                error_code=NETWORK_ERROR,
                error=str(e),
            )
            return DispatchResult(
                status=RequestStatus.ERROR,
                usage=TokenUsage(input_tokens=0, output_tokens=0),
                duration_ms=duration_ms,
                started_at=started_at,
                error_code=NETWORK_ERROR,
                error_message=str(e) or type(e).__name__
            )

        duration_ms = _elapsed_ms(start)
        return DispatchResult(
            status=RequestStatus.SUCCESS,
            usage=usage,
            duration_ms=duration_ms,
            started_at=started_at,
            response_content=content
        )


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def _token_count(usage: Any, name: str) -> int:
    value = getattr(usage, name, None)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Provider returned a malformed usage.{name}: {value!r}")
    return value


def _extract_usage(response: Any) -> TokenUsage:
    """Token usage from a completion; missing counts default to 0.

    Raises:
        ValueError: If a count is present but not a non-negative integer
    """
    usage = getattr(response, "usage", None)
    if usage is None:
        return TokenUsage(input_tokens=0, output_tokens=0)
    return TokenUsage(
        input_tokens=_token_count(usage, "prompt_tokens"),
        output_tokens=_token_count(usage, "completion_tokens")
    )


def _extract_content(response: Any) -> str:
    """Content of the first choice; empty string when absent.

    Non-string content (e.g. a list of content parts) is stored as its JSON
    encoding so the recorded response is always text.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    if message is None:
        return ""
    content = getattr(message, "content", None)
    if not content:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)
