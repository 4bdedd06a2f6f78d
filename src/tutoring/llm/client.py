"""LLM client for OpenAI-compatible completion services.

Provides a unified interface for the tutor chat, exam generation and exam
grading calls. The client never raises at construction time: when no API key
is configured it reports ``is_configured == False`` and every request raises
``LLMNotConfiguredError`` so callers can serve their canned fallback content.

Supported providers:
- openai: OpenAI API (default)
- compatible: any OpenAI-compatible server reachable at ``LLM_BASE_URL``
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal

import httpx
import structlog
from openai import APITimeoutError, OpenAI, OpenAIError

from tutoring.config.app_config import LLMSettings, load_app_config
from tutoring.utils.text_utils import strip_think

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["openai", "compatible"]

DEFAULT_BASE_URL = "https://api.openai.com/v1"

JSON_REPAIR_PROMPT = """Fix the following text and return ONLY valid JSON:
<<<
{invalid_output}
>>>

Respond ONLY with the corrected JSON, no explanations and no markdown."""

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: Provider = "openai"
    base_url: str = DEFAULT_BASE_URL
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: int = 60
    api_key: str | None = None

    @classmethod
    def from_settings(cls, settings: LLMSettings | None = None) -> LLMConfig:
        """Build client configuration from the application settings."""
        if settings is None:
            settings = load_app_config().llm

        provider: Provider = "compatible" if settings.base_url else "openai"
        return cls(
            provider=provider,
            base_url=settings.base_url or DEFAULT_BASE_URL,
            model=settings.chat_model,
            timeout=settings.timeout,
            api_key=settings.api_key,
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str | list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: Provider
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    pass


class LLMConnectionError(LLMError):
    """Error connecting to LLM server."""

    pass


class LLMResponseError(LLMError):
    """Error in LLM response."""

    pass


class LLMTimeoutError(LLMConnectionError):
    """The completion service did not answer within the timeout."""

    pass


class LLMNotConfiguredError(LLMError):
    """No API key is configured for the completion service."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified client for LLM interactions over the OpenAI SDK."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        model: str | None = None,
    ):
        """Initialize LLM client.

        Args:
            config: LLM configuration (built from app config if not provided)
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_settings()

        self.config = config

        if model is not None:
            self.config.model = model

        self._client: OpenAI | None = None
        if self.config.api_key:
            self._client = OpenAI(
                base_url=self.config.base_url,
                api_key=self.config.api_key,
                timeout=self.config.timeout,
            )

        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            configured=self.is_configured,
        )

    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return self._client is not None

    def _require_client(self) -> OpenAI:
        if self._client is None:
            raise LLMNotConfiguredError("AI service API key is not configured")
        return self._client

    def _build_request(
        self,
        messages: list[Message],
        temperature: float | None,
        max_tokens: int | None,
        model: str | None,
    ) -> dict[str, Any]:
        return {
            "model": model or self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
        model: str | None = None,
        timeout: float | None = None,
    ) -> LLMResponse:
        """Send chat completion request.

        Args:
            messages: List of messages in conversation
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_mode: Request JSON response format
            model: Override model for this call
            timeout: Override client timeout (seconds) for this call

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMNotConfiguredError: If no API key is configured
            LLMConnectionError: If cannot connect to server
            LLMTimeoutError: If the call exceeds the timeout
            LLMResponseError: If response is invalid
        """
        client = self._require_client()
        request_kwargs = self._build_request(messages, temperature, max_tokens, model)

        if json_mode and self.config.provider == "openai":
            request_kwargs["response_format"] = {"type": "json_object"}
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        start_time = time.time()

        try:
            response = client.chat.completions.create(**request_kwargs)
        except APITimeoutError as e:
            raise LLMTimeoutError(f"LLM call timed out after {timeout or self.config.timeout}s") from e
        except Exception as e:
            error_msg = str(e)
            if "Connection" in error_msg or "connect" in error_msg.lower() or "timed out" in error_msg.lower():
                raise LLMConnectionError(
                    f"Could not reach {self.config.provider} at {self.config.base_url}: {e}"
                ) from e
            raise LLMError(f"LLM call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from LLM")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def chat_stream(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> Iterator[str]:
        """Send chat completion request with streaming.

        Yields content chunks as they arrive. If the stream cannot be opened,
        falls back to a single non-streaming request; if that also fails the
        error propagates to the consumer.

        Raises:
            LLMNotConfiguredError: If no API key is configured
            LLMError: If both streaming and the fallback request fail
        """
        client = self._require_client()
        request_kwargs = self._build_request(messages, temperature, max_tokens, model)
        request_kwargs["stream"] = True

        try:
            stream = client.chat.completions.create(**request_kwargs)
        except Exception as e:
            logger.warning("streaming_failed_fallback", error=str(e))
            response = self.chat(messages, temperature, max_tokens, model=model)
            yield response.content
            return

        try:
            for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except (OpenAIError, httpx.HTTPError) as e:
            raise LLMConnectionError(f"Stream interrupted: {e}") from e

    def _try_parse_json(self, content: str) -> dict[str, Any] | None:
        """Try to parse a JSON object from content.

        Tries:
        1. Direct parse
        2. Extract from ```json ... ``` blocks
        3. Extract first {...} object

        Returns parsed dict or None if all strategies fail.
        """
        content = strip_think(content)

        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
        if json_match:
            try:
                parsed = json.loads(json_match.group(1).strip())
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            try:
                parsed = json.loads(content[start:end])
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        return None

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
        model: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send chat request expecting a JSON object response.

        Retries once with a repair prompt when the first answer does not parse.

        Raises:
            LLMResponseError: If response is not valid JSON after retries
        """
        response = self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
            model=model,
            timeout=timeout,
        )

        parsed = self._try_parse_json(response.content)
        if parsed is not None:
            return parsed

        if max_retries > 0:
            logger.warning(
                "json_parse_failed_retrying",
                content=response.content[:100],
                provider=self.config.provider,
            )

            repair_prompt = JSON_REPAIR_PROMPT.format(
                invalid_output=response.content[:1000]
            )
            retry_messages = messages + [
                Message(role="assistant", content=response.content[:1000]),
                Message(role="user", content=repair_prompt),
            ]

            retry_response = self.chat(
                retry_messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
                model=model,
                timeout=timeout,
            )

            parsed = self._try_parse_json(retry_response.content)
            if parsed is not None:
                logger.info("json_parse_recovered_after_retry")
                return parsed

        raise LLMResponseError(
            f"Could not obtain valid JSON: {response.content[:200]}..."
        )

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Single-turn chat expecting a JSON object response."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]
        return self.chat_json(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            model=model,
            timeout=timeout,
        )

    def is_available(self) -> bool:
        """Check if the completion service responds.

        Returns:
            True if server responds, False otherwise
        """
        if self._client is None:
            return False
        try:
            self._client.models.list()
            return True
        except Exception as e:
            logger.debug("llm_unavailable", error=str(e))
            return False
