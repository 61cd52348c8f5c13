"""AI fallback for tasks no rule recognises.

The decision loop depends only on the AIQuery protocol. LiteLLMQuery is the
shipped implementation: one LiteLLM model, with exponential backoff retry on
transient provider errors.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Protocol

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from devpilot.rules.text import canonical_json  # noqa: E402
from devpilot.schemas.config import AIConfig  # noqa: E402
from devpilot.schemas.tasks import Task  # noqa: E402

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


class AIQuery(Protocol):
    """``(prompt, max_tokens, temperature) -> text``. May raise."""

    async def __call__(
        self, prompt: str, *, max_tokens: int = 200, temperature: float = 0.3,
    ) -> str: ...


def build_analysis_prompt(task: Task, context: str = "") -> str:
    """Prompt asking the model what should be done about a task."""
    description = task.description or canonical_json(task.data)
    prompt = (
        "Analyze this task and suggest an action:\n"
        f"Task Type: {task.type}\n"
        f"Category: {task.category or 'unknown'}\n"
        f"Description: {description}\n\n"
        "Provide:\n"
        "1. What is the issue?\n"
        "2. What action should be taken?\n"
        "3. Confidence level (0-1)"
    )
    return f"{context}\n\n{prompt}" if context else prompt


# Retryable LiteLLM errors and how they read in the retry log
_RETRY_REASONS: tuple[tuple[type[Exception], str], ...] = (
    (litellm.RateLimitError, "rate limit"),
    (litellm.ServiceUnavailableError, "service unavailable"),
    (litellm.InternalServerError, "server error"),
    (litellm.APIConnectionError, "connection error"),
    (TimeoutError, "timeout"),
)


def _retry_reason(error: Exception | None) -> str:
    for error_type, reason in _RETRY_REASONS:
        if isinstance(error, error_type):
            return reason
    return str(error)[:80]


class LiteLLMQuery:
    """AIQuery backed by litellm.acompletion()."""

    def __init__(self, config: AIConfig | None = None) -> None:
        self._config = config or AIConfig()
        self._api_key = os.environ.get(self._config.api_key_env, "")

    async def __call__(
        self, prompt: str, *, max_tokens: int = 200, temperature: float = 0.3,
    ) -> str:
        kwargs: dict = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": float(self._config.timeout),
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        response = await self._call_with_retry(kwargs)
        if not response.choices:
            return ""
        message = response.choices[0].message
        return (message.content or "") if message else ""

    async def _call_with_retry(self, kwargs: dict) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Raises:
            TimeoutError: If all retries time out.
            RuntimeError: On auth/bad-request errors, or after all retries fail.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Model call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(f"Bad request to {self._config.model}: {e}") from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "AI retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, self._config.model,
                    _retry_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"AI call to {self._config.model} failed after {_MAX_RETRIES} retries: {last_error}"
        ) from last_error
