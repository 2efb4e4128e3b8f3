"""
Unit tests for SDK layer.

Tests the provider dispatcher's outcome normalization.
"""

import json
from unittest.mock import Mock, patch

import httpx
import openai

from llm_replay.config.loader import DispatchPolicy, ReplayConfig
from llm_replay.core.payload import ChatPayload
from llm_replay.sdk.openai_client import NETWORK_ERROR, ProviderDispatcher
from llm_replay.storage.models import ProviderRecord, RequestStatus


PROVIDER = ProviderRecord(
    id="prov_1",
    name="openai",
    provider_type="openai",
    base_url="https://api.example.com/v1/",
    api_key="sk-test"
)

PAYLOAD = ChatPayload(
    model="gpt-4o",
    messages=[{"role": "user", "content": "Hello"}],
    temperature=0.2
)

COMPLETION = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [{
        "index": 0,
        "message": {"role": "assistant", "content": "Hi there"},
        "finish_reason": "stop"
    }],
    "usage": {"prompt_tokens": 12, "completion_tokens": 7, "total_tokens": 19}
}


def _status_error(status: int, body: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
    response = httpx.Response(status, text=body, request=request)
    return openai.APIStatusError(f"Error code: {status}", response=response, body=body)


def _mock_dispatcher(handler) -> ProviderDispatcher:
    return ProviderDispatcher(http_client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestDispatchOverHttp:
    """Exercise the dispatcher against a mocked HTTP transport."""

    def test_success_request_shape(self):
        """One POST to {base_url}/chat/completions with bearer auth and the payload."""
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=COMPLETION)

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert len(captured) == 1
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.example.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4o"
        assert body["messages"] == [{"role": "user", "content": "Hello"}]
        assert body["temperature"] == 0.2
        assert body.get("stream", False) is False

        assert result.status == RequestStatus.SUCCESS
        assert result.usage.input_tokens == 12
        assert result.usage.output_tokens == 7
        assert result.response_content == "Hi there"
        assert result.error_code is None
        assert result.duration_ms >= 0

    def test_provider_error_single_attempt(self):
        """A 500 is recorded with its status and raw body, and never retried."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="rate limited")

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert len(calls) == 1
        assert result.status == RequestStatus.ERROR
        assert result.error_code == "provider_error_500"
        assert result.error_message == "rate limited"
        assert result.response_content is None
        assert result.usage.total_tokens == 0

    def test_client_error_status(self):
        """4xx responses use the same provider_error_<status> code."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert result.error_code == "provider_error_401"
        assert "bad key" in result.error_message

    def test_connection_failure(self):
        """Transport failures become network_error results."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.ERROR
        assert result.error_code == NETWORK_ERROR
        assert result.error_message
        assert result.response_content is None

    def test_missing_usage_and_content_default(self):
        """Absent usage counts default to 0 and absent content to an empty string."""
        completion = dict(COMPLETION)
        completion.pop("usage")
        completion["choices"] = [{
            "index": 0,
            "message": {"role": "assistant", "content": None},
            "finish_reason": "stop"
        }]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=completion)

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.SUCCESS
        assert result.usage.input_tokens == 0
        assert result.usage.output_tokens == 0
        assert result.response_content == ""

    def test_non_json_success_body(self):
        """A 2xx reply that is not JSON is not mistaken for an empty success."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway ok</html>", headers={"content-type": "text/html"})

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.ERROR
        assert result.error_code == NETWORK_ERROR
        assert "non-JSON" in result.error_message
        assert result.response_content is None

    def test_negative_usage_is_network_error(self):
        """Malformed usage counts are reported instead of raised."""
        completion = dict(COMPLETION)
        completion["usage"] = {"prompt_tokens": -1, "completion_tokens": 7, "total_tokens": 6}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=completion)

        result = _mock_dispatcher(handler).dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.ERROR
        assert result.error_code == NETWORK_ERROR
        assert "input_tokens must be >= 0" in result.error_message
        assert result.usage.total_tokens == 0


class TestProviderDispatcher:
    """Test dispatcher behavior with a mocked OpenAI client."""

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_client_configured_from_policy(self, mock_openai_class):
        """Timeout and retries come from the provider's dispatch policy."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = Mock(usage=None, choices=[])
        mock_openai_class.return_value = mock_client
        config = ReplayConfig(providers={"openai": DispatchPolicy(timeout_seconds=5, max_retries=2)})

        ProviderDispatcher(config).dispatch(PROVIDER, PAYLOAD)

        mock_openai_class.assert_called_once_with(
            base_url="https://api.example.com/v1",
            api_key="sk-test",
            timeout=5,
            max_retries=2,
            http_client=None
        )
        mock_client.chat.completions.create.assert_called_once_with(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hello"}],
            stream=False,
            temperature=0.2
        )

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_default_policy_is_single_attempt(self, mock_openai_class):
        """Without configuration the client never retries."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = Mock(usage=None, choices=[])
        mock_openai_class.return_value = mock_client

        ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert mock_openai_class.call_args.kwargs["max_retries"] == 0

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_status_error_normalized(self, mock_openai_class):
        """APIStatusError maps to provider_error_<status> with the raw body."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = _status_error(503, "upstream unavailable")
        mock_openai_class.return_value = mock_client

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.error_code == "provider_error_503"
        assert result.error_message == "upstream unavailable"

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_unexpected_exception_normalized(self, mock_openai_class):
        """Nothing raised by the client escapes dispatch()."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = RuntimeError("socket closed")
        mock_openai_class.return_value = mock_client

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.ERROR
        assert result.error_code == "network_error"
        assert result.error_message == "socket closed"

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_client_construction_failure_normalized(self, mock_openai_class):
        """A client that cannot be built is reported as a network error."""
        mock_openai_class.side_effect = openai.OpenAIError("bad base url")

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.error_code == "network_error"
        assert result.error_message == "bad base url"

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_completed_at_follows_duration(self, mock_openai_class):
        """completed_at is started_at plus the measured duration."""
        from datetime import timedelta

        mock_client = Mock()
        mock_client.chat.completions.create.return_value = Mock(usage=None, choices=[])
        mock_openai_class.return_value = mock_client

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.completed_at == result.started_at + timedelta(milliseconds=result.duration_ms)


class TestResponseExtraction:
    """Test normalization of completion objects returned by the client."""

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_non_integer_usage_is_network_error(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = Mock(
            usage=Mock(prompt_tokens="12", completion_tokens=7),
            choices=[]
        )
        mock_openai_class.return_value = mock_client

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.error_code == NETWORK_ERROR
        assert "prompt_tokens" in result.error_message

    @patch('llm_replay.sdk.openai_client.OpenAI')
    def test_list_content_stored_as_text(self, mock_openai_class):
        """Content parts are recorded as their JSON text."""
        parts = [{"type": "text", "text": "Hi there"}]
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = Mock(
            usage=None,
            choices=[Mock(message=Mock(content=parts))]
        )
        mock_openai_class.return_value = mock_client

        result = ProviderDispatcher().dispatch(PROVIDER, PAYLOAD)

        assert result.status == RequestStatus.SUCCESS
        assert isinstance(result.response_content, str)
        assert json.loads(result.response_content) == parts
