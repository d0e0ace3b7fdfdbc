"""
Anthropic Claude API client for the reasoning steps.
Non-streaming completions only: tool selection, response generation and
content generation each need the whole answer before they can act on it.
Includes exponential backoff on rate-limit and overload errors.
"""

from __future__ import annotations

import asyncio
import logging

import anthropic

from ..config import settings
from ..exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)


class ClaudeClient:
    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else settings.model_timeout
        self._max_retries = max_retries if max_retries is not None else settings.model_max_retries
        self._retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.model_retry_base_delay
        )
        # Retries are handled here so backoff is visible in our logs
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key or settings.anthropic_api_key,
            timeout=self._timeout,
            max_retries=0,
        )

    async def complete(
        self,
        messages: list[dict],
        model: str | None = None,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Return the full text of a single completion.

        Raises ServiceUnavailableError once retries on transient errors
        (429, 5xx, connection problems, timeouts) are exhausted. Other API
        errors propagate unchanged.
        """
        model = model or settings.model_response
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens or settings.anthropic_max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                response = await self._client.messages.create(**kwargs)
                if not response.content:
                    return ""
                return "".join(
                    getattr(block, "text", "") for block in response.content
                    if getattr(block, "type", "text") == "text"
                )
            except anthropic.RateLimitError as e:
                last_error = e
                logger.warning(
                    "Rate limited (attempt %d/%d) model=%s",
                    attempt + 1, self._max_retries, model,
                )
            except anthropic.APIStatusError as e:
                if e.status_code < 500:
                    raise
                last_error = e
                logger.warning(
                    "Anthropic overload %d (attempt %d/%d) model=%s",
                    e.status_code, attempt + 1, self._max_retries, model,
                )
            except (anthropic.APIConnectionError, anthropic.APITimeoutError) as e:
                last_error = e
                logger.warning(
                    "Anthropic unreachable (attempt %d/%d) model=%s: %s",
                    attempt + 1, self._max_retries, model, e,
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * (2**attempt))

        raise ServiceUnavailableError(
            f"Reasoning model unavailable after {self._max_retries} attempts: {last_error}"
        )

    async def ping(self) -> bool:
        """Lightweight availability check using the models list endpoint."""
        try:
            await self._client.models.list()
            return True
        except Exception:
            return False
