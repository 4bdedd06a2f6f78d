"""LLM client package."""

from tutoring.llm.client import (
    LLMClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMNotConfiguredError,
    LLMResponse,
    LLMResponseError,
    LLMTimeoutError,
    Message,
)

__all__ = [
    "LLMClient",
    "LLMConfig",
    "LLMConnectionError",
    "LLMError",
    "LLMNotConfiguredError",
    "LLMResponse",
    "LLMResponseError",
    "LLMTimeoutError",
    "Message",
]
