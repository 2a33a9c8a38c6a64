"""OpenAI-compatible chat completions client.

Implements the ``CallModel`` capability over any endpoint that speaks the
OpenAI ``/chat/completions`` protocol (OpenRouter, Pollinations' ``/openai``
route, local gateways).

Error Handling:
    - 401/403: UpstreamAuthenticationError, not retried
    - 429: UpstreamRateLimitError, retried when max_retries > 0
    - 5xx / transport errors / timeouts: UpstreamCallError, retried when max_retries > 0
    - other 4xx: UpstreamCallError, not retried

Example usage:
    client = OpenAICompatibleClient("https://openrouter.ai/api/v1", api_key="sk-...")
    text = await client.call_model(
        "openai/gpt-4o-mini",
        [{"role": "user", "content": "Hello"}],
        {"temperature": 0.2},
    )
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import httpx

from chunkflow.core.errors.upstream import (
    UpstreamAuthenticationError,
    UpstreamCallError,
    UpstreamRateLimitError,
)

from .types import ChatMessage

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_ENDPOINT = "/chat/completions"
DEFAULT_TIMEOUT = 120.0
DEFAULT_RETRY_DELAY = 3.0  # seconds

# Options forwarded to the request body when present
_FORWARDED_OPTIONS = ("temperature", "reasoning_effort", "max_tokens", "top_p", "seed")


class OpenAICompatibleClient:
    """Model caller for OpenAI-compatible chat completion endpoints.

    Attributes:
        base_url: API base URL without the endpoint path
        timeout: Request timeout in seconds
        max_retries: Extra attempts for rate limits, 5xx and transport errors
        retry_delay: Delay between attempts when the endpoint gives no Retry-After
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL (e.g. https://openrouter.ai/api/v1)
            api_key: Bearer token. If not provided, reads CHUNKFLOW_API_KEY;
                anonymous endpoints need none.
            timeout: Request timeout in seconds
            max_retries: Extra attempts for retryable failures (default: 0)
            retry_delay: Delay between attempts in seconds
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key or os.environ.get("CHUNKFLOW_API_KEY")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.provider = urlparse(self.base_url).netloc or self.base_url

    async def __call__(
        self,
        model_id: str,
        messages: list[ChatMessage],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        return await self.call_model(model_id, messages, options)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def build_payload(
        self,
        model_id: str,
        messages: list[ChatMessage],
        options: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """Build the request body for one call.

        A ``system_prompt`` option is prepended as a system message only
        when the messages contain none.
        """
        options = options or {}
        outgoing = list(messages)
        system_prompt = options.get("system_prompt")
        if system_prompt and all(m["role"] != "system" for m in outgoing):
            outgoing.insert(0, {"role": "system", "content": system_prompt})

        payload: dict[str, Any] = {
            "model": model_id,
            "messages": outgoing,
            "stream": False,
        }
        for key in _FORWARDED_OPTIONS:
            if options.get(key) is not None:
                payload[key] = options[key]
        return payload

    async def call_model(
        self,
        model_id: str,
        messages: list[ChatMessage],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Send one chat completion request and return the message text.

        Returns:
            ``choices[0].message.content``, or an empty string if absent

        Raises:
            UpstreamAuthenticationError: If the API key is rejected
            UpstreamRateLimitError: If rate limited after all attempts
            UpstreamCallError: For other HTTP, transport, or timeout failures
        """
        payload = self.build_payload(model_id, messages, options)
        last_error: Optional[UpstreamCallError] = None

        for attempt in range(self.max_retries + 1):
            try:
                data = await self._post(payload)
                return self._extract_content(data)
            except UpstreamAuthenticationError:
                raise
            except UpstreamRateLimitError as e:
                last_error = e
                delay = e.retry_after if e.retry_after is not None else self.retry_delay
            except UpstreamCallError as e:
                if e.status_code is not None and e.status_code < 500:
                    raise
                last_error = e
                delay = self.retry_delay

            logger.warning(
                f"Model call attempt {attempt + 1}/{self.max_retries + 1} to "
                f"{self.provider} failed: {last_error}"
            )
            if attempt < self.max_retries:
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{CHAT_COMPLETIONS_ENDPOINT}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise UpstreamCallError(
                f"Request to {self.provider} timed out after {self.timeout}s",
                provider=self.provider,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamCallError(
                f"Could not connect to {self.provider}: {e}",
                provider=self.provider,
            ) from e

        if response.status_code in (401, 403):
            raise UpstreamAuthenticationError(
                f"{self.provider} rejected the API key ({response.status_code})",
                provider=self.provider,
                status_code=response.status_code,
            )

        if response.status_code == 429:
            raise UpstreamRateLimitError(
                f"{self.provider} rate limit exceeded",
                provider=self.provider,
                retry_after=self._parse_retry_after(response),
            )

        if response.status_code >= 400:
            raise UpstreamCallError(
                f"{self.provider} API error ({response.status_code}): "
                f"{self._extract_error_message(response)}",
                provider=self.provider,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamCallError(
                f"{self.provider} returned a non-JSON response",
                provider=self.provider,
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _extract_content(data: Mapping[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    def _parse_retry_after(self, response: httpx.Response) -> Optional[float]:
        """Parse Retry-After header from response.

        Returns:
            Seconds to wait, or None if not provided
        """
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return None

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] if response.text else "Unknown error"
        if isinstance(data, dict):
            error = data.get("error", data.get("message"))
            if isinstance(error, dict):
                error = error.get("message")
            if error:
                return str(error)
        return response.text[:200] if response.text else "Unknown error"
