"""
Tests for the LLM client.

These tests use respx to avoid actual API calls.
"""

import json

import pytest
import respx
from httpx import ConnectError, Response

from docsync.config.models import GeneratorConfig
from docsync.utils.llm_client import (
    CHAT_ENDPOINT,
    APIError,
    AsyncLLMClient,
    AuthenticationError,
    ContextLengthError,
    LLMClientError,
    Message,
    RateLimiter,
    RateLimitError,
    TokenUsage,
    UsageTracker,
)

BASE_URL = "https://openrouter.ai/api/v1"
CHAT_URL = f"{BASE_URL}{CHAT_ENDPOINT}"
MESSAGES = [Message(role="user", content="Hello")]


def completion(content: str = "Hello back", prompt_tokens: int = 10, completion_tokens: int = 5) -> dict:
    return {
        "id": "gen-123",
        "model": "openai/o3",
        "choices": [{"message": {"content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    }


def make_client(**kwargs) -> AsyncLLMClient:
    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("retry_wait_min", 0)
    return AsyncLLMClient(**kwargs)


class TestMessage:
    """Tests for Message class."""

    def test_message_to_dict(self):
        """Test converting message to dict."""
        msg = Message(role="system", content="You are helpful")
        assert msg.to_dict() == {"role": "system", "content": "You are helpful"}


class TestTokenUsage:
    """Tests for TokenUsage class."""

    def test_token_usage_add(self):
        """Test adding two TokenUsage objects."""
        first = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150, model="openai/o3")
        second = TokenUsage(prompt_tokens=200, completion_tokens=100, total_tokens=300)
        result = first.add(second)

        assert (result.prompt_tokens, result.completion_tokens, result.total_tokens) == (300, 150, 450)
        assert result.model == "openai/o3"


class TestUsageTracker:
    """Tests for UsageTracker class."""

    @pytest.mark.asyncio
    async def test_track_multiple_models(self):
        """Test usage is grouped by model and totalled."""
        tracker = UsageTracker()
        await tracker.track(TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15, model="a"))
        await tracker.track(TokenUsage(prompt_tokens=20, completion_tokens=5, total_tokens=25, model="b"))
        await tracker.track(TokenUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2, model="a"))
        await tracker.track_error()

        summary = await tracker.get_summary()

        assert summary["by_model"]["a"]["total_tokens"] == 17
        assert summary["totals"] == {"total_tokens": 42, "requests": 3, "errors": 1}


class TestRateLimiter:
    """Tests for RateLimiter class."""

    @pytest.mark.asyncio
    async def test_acquire_under_limit(self):
        """Test acquiring within the budget does not block."""
        limiter = RateLimiter(requests_per_minute=60)
        for _ in range(5):
            await limiter.acquire()


class TestAsyncLLMClient:
    """Tests for AsyncLLMClient configuration."""

    def test_from_config(self):
        """Test the client picks up generator settings."""
        config = GeneratorConfig(base_url="https://llm.example.com/v1", max_http_retries=5)
        client = AsyncLLMClient.from_config(config, api_key="k")

        assert client._base_url == "https://llm.example.com/v1"
        assert client._max_retries == 5

    def test_build_request_body(self):
        """Test optional fields only appear when set."""
        client = make_client()
        plain = client._build_request_body("m", MESSAGES, None, None, False, None)
        full = client._build_request_body("m", MESSAGES, 100, 0.2, True, "high")

        assert plain == {"model": "m", "messages": [{"role": "user", "content": "Hello"}]}
        assert full["max_tokens"] == 100
        assert full["temperature"] == 0.2
        assert full["response_format"] == {"type": "json_object"}
        assert full["reasoning"] == {"effort": "high"}

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        """Test a missing key fails before any request."""
        monkeypatch.setattr("docsync.utils.llm_client.get_api_key", lambda provider: None)
        client = AsyncLLMClient(api_key=None)

        with pytest.raises(AuthenticationError, match="OPENROUTER_API_KEY"):
            await client.send_message(model="m", messages=MESSAGES)

    @pytest.mark.asyncio
    async def test_client_context_manager(self):
        """Test client as async context manager."""
        async with make_client() as client:
            assert client._client is not None

        assert client._client is None


class TestAsyncLLMClientAPI:
    """Tests for AsyncLLMClient API interactions (mocked)."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_message_success(self):
        """Test a successful call returns content and tracks usage."""
        route = respx.post(CHAT_URL).mock(return_value=Response(200, json=completion()))

        async with make_client() as client:
            response = await client.send_message(
                model="openai/o3",
                messages=MESSAGES,
                json_mode=True,
                reasoning_effort="medium",
            )
            summary = await client.usage_tracker.get_summary()

        assert response.content == "Hello back"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert summary["totals"]["requests"] == 1

        request = route.calls.last.request
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        assert body["reasoning"] == {"effort": "medium"}
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["X-Title"] == "docsync"

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_not_retried(self):
        """Test 429 surfaces immediately with Retry-After."""
        route = respx.post(CHAT_URL).mock(
            return_value=Response(429, headers={"Retry-After": "30"}, json={"error": {"message": "slow"}})
        )

        async with make_client() as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.send_message(model="m", messages=MESSAGES)
            summary = await client.usage_tracker.get_summary()

        assert exc_info.value.retry_after == 30.0
        assert route.call_count == 1
        assert summary["totals"]["errors"] == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_error(self):
        """Test authentication error handling."""
        respx.post(CHAT_URL).mock(return_value=Response(401, json={"error": {"message": "Invalid API key"}}))

        async with make_client(api_key="invalid-key") as client:
            with pytest.raises(AuthenticationError):
                await client.send_message(model="m", messages=MESSAGES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_context_length_error(self):
        """Test an oversized prompt maps to ContextLengthError."""
        respx.post(CHAT_URL).mock(
            return_value=Response(
                400, json={"error": {"message": "This model's maximum context length is 8192 tokens"}}
            )
        )

        async with make_client() as client:
            with pytest.raises(ContextLengthError):
                await client.send_message(model="m", messages=MESSAGES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_client_error(self):
        """Test other 4xx responses are rejected without retry."""
        route = respx.post(CHAT_URL).mock(
            return_value=Response(422, json={"error": {"message": "unknown model"}})
        )

        async with make_client() as client:
            with pytest.raises(LLMClientError, match="Request rejected \\(422\\): unknown model") as exc_info:
                await client.send_message(model="m", messages=MESSAGES)

        assert not isinstance(exc_info.value, APIError)
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_retried(self):
        """Test a 5xx response is retried and the next success returned."""
        route = respx.post(CHAT_URL).mock(
            side_effect=[
                Response(502, json={"error": {"message": "bad gateway"}}),
                Response(200, json=completion("recovered")),
            ]
        )

        async with make_client() as client:
            response = await client.send_message(model="m", messages=MESSAGES)

        assert response.content == "recovered"
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_exhausts_retries(self):
        """Test persistent 5xx responses raise APIError after max_retries."""
        route = respx.post(CHAT_URL).mock(return_value=Response(500, text="oops"))

        async with make_client(max_retries=2) as client:
            with pytest.raises(APIError) as exc_info:
                await client.send_message(model="m", messages=MESSAGES)

        assert exc_info.value.status_code == 500
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_retried(self):
        """Test connection failures count as retryable API errors."""
        route = respx.post(CHAT_URL).mock(
            side_effect=[ConnectError("refused"), Response(200, json=completion())]
        )

        async with make_client() as client:
            response = await client.send_message(model="m", messages=MESSAGES)

        assert response.content == "Hello back"
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_choices(self):
        """Test a response without choices is an API error."""
        respx.post(CHAT_URL).mock(return_value=Response(200, json={"choices": []}))

        async with make_client(max_retries=1) as client:
            with pytest.raises(APIError, match="No choices"):
                await client.send_message(model="m", messages=MESSAGES)
