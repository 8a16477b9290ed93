"""LLM client: HTTP connection to an OpenAI-compatible chat completions API.

Generation and revision read the response as a Server-Sent-Events stream
(stream_lines); the negotiation persona uses a plain request (complete).
Callers that only need text can depend on the LLM protocol below and pass a
stub in tests.

Provider failures are never retried. A non-success status is turned into an
UpstreamError whose message tells the operator what to fix.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from bloxfolio.extraction import extract_message_content

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    def stream_lines(self, messages: Messages, **options: Any) -> AsyncIterator[str]: ...

    async def complete(self, messages: Messages, **options: Any) -> str: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM provider cannot be reached or returns an error."""


class UpstreamError(LLMError):
    """The provider answered with a non-success status."""

    def __init__(
        self, message: str, status_code: int, retry_after: float | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


_RETRY_DELAY_RE = re.compile(r'"retryDelay"\s*:\s*"([0-9.]+)s"', re.IGNORECASE)


def classify_upstream_error(
    status: int, details: str, url: str, model: str
) -> UpstreamError:
    """Map a failed response to an operator-facing error."""
    lowered = details.lower()

    if status == 400 and ("api_key_invalid" in lowered or "api key not valid" in lowered):
        return UpstreamError(
            f"OpenRouter API key was rejected at {url}. Confirm the key is active "
            f"and has access to {model}. Provider said: {details}",
            status,
        )
    if status in (401, 403):
        return UpstreamError(
            f"OpenRouter API auth failed ({status}) at {url}. Confirm "
            f"OPENROUTER_API_KEY and OPENROUTER_MODEL are valid in .env. "
            f"Provider said: {details}",
            status,
        )
    if status == 429:
        match = _RETRY_DELAY_RE.search(details)
        retry_after = float(match.group(1)) if match else None
        if "quota" in lowered or "resource_exhausted" in lowered:
            hint = f" Retry in about {math.ceil(retry_after)}s." if retry_after else ""
            return UpstreamError(
                f"OpenRouter quota exceeded for model '{model}' at {url}.{hint}",
                status, retry_after,
            )
        if retry_after is not None:
            return UpstreamError(
                f"OpenRouter API returned rate-limited response ({status}) at {url}. "
                f"Retry in about {math.ceil(retry_after)}s. Provider said: {details}",
                status, retry_after,
            )
    if status == 503:
        return UpstreamError(
            f"OpenRouter endpoint unavailable ({status}) at {url}: {details}", status
        )
    return UpstreamError(f"OpenRouter API error ({status}) at {url}: {details}", status)


# ---------------------------------------------------------------------------
# ChatLLM: connects to a real provider
# ---------------------------------------------------------------------------

class ChatLLM:
    """Async client for an OpenAI-compatible /chat/completions endpoint.

    Args:
        completions_url: Full endpoint URL, e.g.
                         "https://openrouter.ai/api/v1/chat/completions".
        api_key:         Bearer token.
        model:           Model identifier sent with every request.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        transport:       Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        completions_url: str,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = completions_url
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _body(self, messages: Messages, options: dict[str, Any]) -> dict[str, Any]:
        return {"model": self._model, **options, "messages": messages}

    async def stream_lines(self, messages: Messages, **options: Any) -> AsyncIterator[str]:
        """Yield raw response lines of a streamed completion.

        Raises UpstreamError before the first line on a non-success status.
        """
        body = self._body(messages, {
            "top_p": 0.95,
            "temperature": 0.8,
            "max_tokens": 8192,
            "include_reasoning": True,
            **options,
            "stream": True,
        })
        logger.debug("llm stream url=%s model=%s", self._url, self._model)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self._url, json=body, headers=self._headers()
                ) as resp:
                    if resp.is_error:
                        details = (await resp.aread()).decode("utf-8", "replace")
                        logger.error("llm stream failed status=%d", resp.status_code)
                        raise classify_upstream_error(
                            resp.status_code, details, self._url, self._model
                        )
                    async for line in resp.aiter_lines():
                        yield line
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM provider at {self._url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM provider timed out after {self._timeout}s") from e
        except httpx.StreamError as e:
            raise LLMError(f"No readable stream available from {self._url}") from e
        except httpx.TransportError as e:
            raise LLMError(f"Lost connection to LLM provider at {self._url}: {e}") from e

    async def complete(self, messages: Messages, **options: Any) -> str:
        body = self._body(messages, options)
        logger.debug("llm call url=%s model=%s", self._url, self._model)

        try:
            async with self._client() as client:
                resp = await client.post(self._url, json=body, headers=self._headers())
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM provider at {self._url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM provider timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"Lost connection to LLM provider at {self._url}: {e}") from e

        if resp.is_error:
            raise classify_upstream_error(resp.status_code, resp.text, self._url, self._model)

        try:
            data = resp.json()
        except json.JSONDecodeError as e:
            raise LLMError("Unexpected response format from LLM provider") from e
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            raise LLMError("Unexpected response format from LLM provider")
        text = extract_message_content((choices[0].get("message") or {}).get("content"))
        logger.debug("llm response len=%d", len(text or ""))
        return text or ""
