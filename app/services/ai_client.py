"""AI provider client.

The analysis engine and OCR extractor talk to the provider through the
AIProvider protocol so tests can pass in fakes. OpenAIProvider is the
production implementation on top of the OpenAI Chat Completions API.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional, Protocol, runtime_checkable

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Transcribe all text in this image of a contract page exactly as written. "
    "Preserve paragraph breaks and the original language. "
    "Return only the transcribed text, without commentary."
)

# Errors that are transient regardless of their message
RETRYABLE_ERROR_TYPES = (
    asyncio.TimeoutError,
    TimeoutError,
    RateLimitError,
    APITimeoutError,
    APIConnectionError,
    InternalServerError,
)

# Lower-cased substrings marking a provider error as transient
RETRYABLE_MESSAGE_MARKERS = (
    "503",
    "overloaded",
    "429",
    "rate limit",
    "too many requests",
    "timeout",
    "timed out",
    "unavailable",
)


def is_retryable_error(exc: BaseException) -> bool:
    """Whether a provider failure is transient (overload, rate limit, timeout)."""
    if isinstance(exc, RETRYABLE_ERROR_TYPES):
        return True
    message = f"{type(exc).__name__}: {exc}".lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


@runtime_checkable
class AIProvider(Protocol):
    """Contract for generative AI providers."""

    name: str

    async def generate(
        self,
        prompt: str,
        model: str,
        *,
        temperature: float = 0.1,
        json_response: bool = True,
    ) -> str:
        ...

    async def transcribe_image(self, data: bytes, content_type: str, model: str) -> str:
        ...


class OpenAIProvider:
    """AIProvider backed by the OpenAI async client.

    SDK-level retries are disabled: retry and fallback policy belong to
    the caller (analysis engine, worker retry policy).
    """

    name = "openai"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        api_key: Optional[str] = None,
        timeout_s: float = 45.0,
    ):
        self._client = client
        self._api_key = api_key or None
        self._timeout_s = timeout_s

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        model: str,
        *,
        temperature: float = 0.1,
        json_response: bool = True,
    ) -> str:
        kwargs = {}
        if json_response:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._get_client().chat.completions.create(
            model=model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        content = response.choices[0].message.content
        logger.debug("Model %s returned %d chars", model, len(content or ""))
        return content or ""

    async def transcribe_image(self, data: bytes, content_type: str, model: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        response = await self._get_client().chat.completions.create(
            model=model,
            temperature=0,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": OCR_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{content_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
        )
        return response.choices[0].message.content or ""


__all__ = ["AIProvider", "OCR_PROMPT", "OpenAIProvider", "RETRYABLE_MESSAGE_MARKERS", "is_retryable_error"]
