"""LiteLLM wrapper for the external analysis capability.

The rest of the system only relies on "messages in, JSON-bearing text
out, possibly malformed, possibly slow, possibly failing". This module:
- Wraps litellm.acompletion() with a bounded timeout
- Makes exactly one attempt per call (retries belong to callers)
- Normalizes errors to our domain exceptions
- Logs token usage for cost monitoring
"""

from __future__ import annotations

from typing import Any, Protocol

import litellm
import structlog

from talentflow.config import Settings, get_settings

log = structlog.get_logger(__name__)


class LLMError(Exception):
    """Base exception for all LLM call failures."""


class LLMTimeoutError(LLMError):
    """The provider did not answer within the configured timeout."""


class LLMUnavailableError(LLMError):
    """Provider unreachable, rate limited or returning 5xx."""


class LLMResponseError(LLMError):
    """The provider answered but the payload is unusable."""


class Analyzer(Protocol):
    """The single external capability the analysis gateway depends on."""

    async def analyze(
        self,
        messages: list[dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


class LLMClient:
    """Thin wrapper around LiteLLM with structured logging."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def analyze(
        self,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = 800,
        temperature: float = 0.2,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send a chat completion request and return the assistant text.

        Raises:
            LLMTimeoutError: No answer within llm_timeout_seconds
            LLMUnavailableError: Rate limit, connection or provider outage
            LLMResponseError: Empty or structurally broken completion
            LLMError: Any other failure
        """
        effective_model = model or self._settings.llm_model

        log.debug(
            "llm.completion_request",
            model=effective_model,
            message_count=len(messages),
            max_tokens=max_tokens,
        )

        try:
            response = await litellm.acompletion(
                model=effective_model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                api_base=self._settings.llm_base_url,
                api_key=self._settings.llm_api_key.get_secret_value(),
                timeout=self._settings.llm_timeout_seconds,
                num_retries=0,
                **kwargs,
            )
        except litellm.exceptions.Timeout as exc:
            raise LLMTimeoutError(f"LLM timed out after {self._settings.llm_timeout_seconds}s") from exc
        except (
            litellm.exceptions.RateLimitError,
            litellm.exceptions.ServiceUnavailableError,
            litellm.exceptions.APIConnectionError,
        ) as exc:
            raise LLMUnavailableError(f"LLM service unavailable: {exc}") from exc
        except Exception as exc:
            raise LLMError(f"LLM completion failed: {exc}") from exc

        usage = getattr(response, "usage", None)
        if usage:
            log.info(
                "llm.completion_done",
                model=effective_model,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )

        text = self.extract_text(response)
        if not text.strip():
            raise LLMResponseError("LLM returned an empty completion")
        return text

    @staticmethod
    def extract_text(response: Any) -> str:
        """Extract the assistant text content from a completion response."""
        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError, KeyError, TypeError):
            return ""
