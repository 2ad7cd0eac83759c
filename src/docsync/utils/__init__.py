"""
Docsync Utilities Module.

Shared helpers used across the engine:

- LLM client for OpenRouter-compatible APIs
- Logging setup with Rich formatting
- Keyed asyncio locks
"""

from docsync.utils.llm_client import (
    APIError,
    AsyncLLMClient,
    AuthenticationError,
    ContextLengthError,
    LLMClientError,
    LLMResponse,
    Message,
    RateLimiter,
    RateLimitError,
    TokenUsage,
    UsageTracker,
)
from docsync.utils.locks import KeyedLock
from docsync.utils.logging import configure_logging

__all__ = [
    # LLM Client
    "AsyncLLMClient",
    "LLMClientError",
    "AuthenticationError",
    "RateLimitError",
    "ContextLengthError",
    "APIError",
    "TokenUsage",
    "LLMResponse",
    "Message",
    "UsageTracker",
    "RateLimiter",
    # Helpers
    "KeyedLock",
    "configure_logging",
]
