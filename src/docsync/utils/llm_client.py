"""
Chat completion client for OpenRouter.

Talks to any OpenAI-compatible /chat/completions endpoint over httpx.
5xx and transport failures are retried here with tenacity; everything else
is mapped to a typed error and left to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docsync.config.environment import get_api_key
from docsync.config.models import GeneratorConfig

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
CHAT_ENDPOINT = "/chat/completions"
MAX_BACKOFF_SECONDS = 120

# Lowercased fragments a provider puts in a 400/413 body for an oversized prompt
CONTEXT_LENGTH_HINTS = ("context length", "context_length", "maximum context", "too many tokens")


class LLMClientError(Exception):
    """Request failed in a way retrying will not fix (e.g. a 4xx)."""


class AuthenticationError(LLMClientError):
    """Missing API key, or the provider answered 401/403."""


class RateLimitError(LLMClientError):
    """Provider answered 429.

    Attributes:
        retry_after: Seconds from the Retry-After header, if it was numeric
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ContextLengthError(LLMClientError):
    """Prompt does not fit the model's context window."""


class APIError(LLMClientError):
    """Server side or transport failure. The only error retried internally."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model: str = ""

    def add(self, other: TokenUsage) -> TokenUsage:
        """Sum of both counts, keeping this model name when set."""
        return TokenUsage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
            self.total_tokens + other.total_tokens,
            self.model or other.model,
        )


@dataclass
class LLMResponse:
    """One completed chat request.

    `model` is what the provider reports, which may differ from the
    requested identifier when routing picks a variant.
    """

    content: str
    model: str
    usage: TokenUsage
    finish_reason: str = "stop"
    raw_response: dict[str, Any] = field(default_factory=dict)
    latency_ms: int = 0


@dataclass
class Message:
    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class UsageTracker:
    """Running token totals per model, plus request and error counts."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._per_model: dict[str, TokenUsage] = defaultdict(TokenUsage)
        self._requests = 0
        self._errors = 0

    async def track(self, usage: TokenUsage) -> None:
        async with self._lock:
            self._requests += 1
            key = usage.model or "unknown"
            self._per_model[key] = self._per_model[key].add(usage)

    async def track_error(self) -> None:
        async with self._lock:
            self._errors += 1

    async def get_summary(self) -> dict[str, Any]:
        async with self._lock:
            by_model = {
                name: {
                    "prompt_tokens": usage.prompt_tokens,
                    "completion_tokens": usage.completion_tokens,
                    "total_tokens": usage.total_tokens,
                }
                for name, usage in self._per_model.items()
            }
            return {
                "by_model": by_model,
                "totals": {
                    "total_tokens": sum(entry["total_tokens"] for entry in by_model.values()),
                    "requests": self._requests,
                    "errors": self._errors,
                },
            }


class RateLimiter:
    """Spaces requests so no more than `requests_per_minute` start per minute.

    Allowance refills continuously; a full minute's worth may burst at start.
    """

    def __init__(self, requests_per_minute: int = 60) -> None:
        self._per_second = requests_per_minute / 60.0
        self._capacity = float(requests_per_minute)
        self._allowance = self._capacity
        self._refilled_at = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            self._allowance = min(self._capacity, self._allowance + (now - self._refilled_at) * self._per_second)
            self._refilled_at = now

            if self._allowance >= 1:
                self._allowance -= 1
                return
            await asyncio.sleep((1 - self._allowance) / self._per_second)
            self._allowance = 0.0
            self._refilled_at = time.monotonic()


def _parse_retry_after(value: str | None) -> float | None:
    # HTTP-date forms are ignored; OpenRouter sends seconds
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
    except (json.JSONDecodeError, AttributeError):
        return response.text
    if isinstance(error, dict):
        return str(error.get("message", response.text))
    return str(error)


class AsyncLLMClient:
    """Async chat completion client.

    Usage:
        async with AsyncLLMClient.from_config(config.generator) as client:
            response = await client.send_message(
                model="openai/o3",
                messages=[Message(role="user", content="Hello!")],
            )
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 300.0,
        max_retries: int = 3,
        requests_per_minute: int = 60,
        app_title: str = "docsync",
        retry_wait_min: float = 4.0,
    ) -> None:
        """
        Args:
            api_key: Falls back to OPENROUTER_API_KEY when omitted
            base_url: Provider root, without the /chat/completions suffix
            timeout: Per-request timeout in seconds
            max_retries: Total attempts for APIError failures
            requests_per_minute: Client side rate limit
            app_title: Sent as X-Title so usage shows up per app
            retry_wait_min: First backoff delay; 0 disables waiting
        """
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_wait_min = retry_wait_min
        self._app_title = app_title
        self._rate_limiter = RateLimiter(requests_per_minute)
        self._usage_tracker = UsageTracker()
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: GeneratorConfig, api_key: str | None = None) -> AsyncLLMClient:
        return cls(
            api_key=api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_http_retries,
            requests_per_minute=config.requests_per_minute,
        )

    @property
    def usage_tracker(self) -> UsageTracker:
        return self._usage_tracker

    async def __aenter__(self) -> AsyncLLMClient:
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client

        key = self._api_key or get_api_key("openrouter")
        if key is None:
            raise AuthenticationError(
                "OpenRouter API key not found. Set OPENROUTER_API_KEY or pass api_key explicitly."
            )
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
                "X-Title": self._app_title,
            },
        )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_request_body(
        self,
        model: str,
        messages: list[Message],
        max_tokens: int | None,
        temperature: float | None,
        json_mode: bool,
        reasoning_effort: str | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "messages": [m.to_dict() for m in messages]}
        optional = {
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"} if json_mode else None,
            "reasoning": {"effort": reasoning_effort} if reasoning_effort else None,
        }
        body.update({key: value for key, value in optional.items() if value is not None})
        return body

    async def send_message(
        self,
        model: str,
        messages: list[Message],
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        reasoning_effort: str | None = None,
    ) -> LLMResponse:
        """Run one chat completion.

        Args:
            model: Provider model identifier
            messages: Conversation so far
            max_tokens: Generation cap, provider default when None
            temperature: Sampling temperature, provider default when None
            json_mode: Ask for a single JSON object back
            reasoning_effort: low, medium or high, passed through as-is

        Raises:
            AuthenticationError: No key, or the key was refused
            RateLimitError: 429 from the provider, never retried here
            ContextLengthError: Prompt too long for the model
            APIError: Server or transport failure after all retries
            LLMClientError: Any other rejected request
        """
        client = await self._ensure_client()
        await self._rate_limiter.acquire()
        body = self._build_request_body(model, messages, max_tokens, temperature, json_mode, reasoning_effort)
        started = time.monotonic()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(
                multiplier=self._retry_wait_min / 2, min=self._retry_wait_min, max=MAX_BACKOFF_SECONDS
            ),
            retry=retry_if_exception_type(APIError),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.debug(f"POST {CHAT_ENDPOINT} model={model} attempt {number}/{self._max_retries}")
                    try:
                        response = await client.post(CHAT_ENDPOINT, json=body)
                    except httpx.TransportError as e:
                        raise APIError(f"Transport error: {e}") from e
                    result = await self._handle_response(response, model, started)
        except LLMClientError:
            await self._usage_tracker.track_error()
            raise

        logger.debug(f"{model} answered in {result.latency_ms}ms")
        return result

    async def _handle_response(self, response: httpx.Response, model: str, started: float) -> LLMResponse:
        latency_ms = int((time.monotonic() - started) * 1000)
        status = response.status_code

        if status in (401, 403):
            raise AuthenticationError("Invalid API key")
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"Rate limited by provider (Retry-After: {retry_after})")
            raise RateLimitError("Rate limit exceeded", retry_after=retry_after)
        if status >= 500:
            raise APIError(_error_message(response), status_code=status)
        if status >= 400:
            message = _error_message(response)
            if status in (400, 413) and any(hint in message.lower() for hint in CONTEXT_LENGTH_HINTS):
                raise ContextLengthError(message)
            raise LLMClientError(f"Request rejected ({status}): {message}")

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            raise APIError("No choices in response")
        first = choices[0]

        counts = data.get("usage") or {}
        prompt_tokens = counts.get("prompt_tokens", 0)
        completion_tokens = counts.get("completion_tokens", 0)
        usage = TokenUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens, model)
        await self._usage_tracker.track(usage)

        return LLMResponse(
            content=(first.get("message") or {}).get("content") or "",
            model=data.get("model", model),
            usage=usage,
            finish_reason=first.get("finish_reason", "stop"),
            raw_response=data,
            latency_ms=latency_ms,
        )
