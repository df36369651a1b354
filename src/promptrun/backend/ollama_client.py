"""Async client for the Ollama ``/api/generate`` endpoint.

One client is built per request. Each call opens its own httpx connection,
applies a per-attempt timeout plus an overall deadline, and retries
transient failures with jittered exponential backoff.
"""
from __future__ import annotations
import asyncio
import logging
import random
from typing import Any

import httpx

from promptrun.backend.errors import (
    BackendConfigError,
    BackendTimeoutError,
    BackendUnavailableError,
    GenerationError,
)
from promptrun.common.config import OllamaSettings

LOGGER = logging.getLogger("promptrun.backend.ollama")

RETRYABLE_STATUS = frozenset({502, 503, 504})


class _Retryable(Exception):
    def __init__(self, error: Exception) -> None:
        super().__init__(str(error))
        self.error = error


class OllamaClient:
    """Generate completions from a locally hosted Ollama model."""

    def __init__(self, settings: OllamaSettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        try:
            url = httpx.URL(settings.base_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise BackendConfigError(f"Invalid Ollama base URL {settings.base_url!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise BackendConfigError(f"Invalid Ollama base URL {settings.base_url!r}")
        if not settings.model:
            raise BackendConfigError("No Ollama model configured")
        if settings.max_retries < 0:
            raise BackendConfigError("max_retries must be >= 0")

        self.settings = settings
        if not url.path.endswith("/"):
            url = url.copy_with(path=url.path + "/")
        self._url = url.join("api/generate")
        self._transport = transport

    @property
    def model(self) -> str:
        return self.settings.model

    async def complete(self, prompt: str) -> str:
        """
        Generate a completion for a single prompt.

        Args:
            prompt: Text sent to the model as-is.

        Returns:
            The completion text.

        Raises:
            BackendUnavailableError: The backend could not be reached.
            GenerationError: The backend returned an error or a malformed payload.
            BackendTimeoutError: The call deadline elapsed.
        """
        try:
            return await asyncio.wait_for(self._complete_with_retries(prompt), timeout=self.settings.call_timeout)
        except asyncio.TimeoutError as e:
            raise BackendTimeoutError(
                f"Ollama did not answer within {self.settings.call_timeout:g}s"
            ) from e

    async def _complete_with_retries(self, prompt: str) -> str:
        payload = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
        }
        if self.settings.options:
            payload["options"] = dict(self.settings.options)

        timeout = httpx.Timeout(self.settings.request_timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            attempt = 0
            while True:
                try:
                    return await self._generate(client, payload)
                except _Retryable as e:
                    if attempt >= self.settings.max_retries:
                        raise e.error from e.__cause__
                    delay = random.uniform(0, self.settings.backoff_base * 2 ** attempt)
                    attempt += 1
                    LOGGER.warning(
                        "Ollama attempt %d/%d failed: %s; retrying in %.2fs",
                        attempt,
                        self.settings.max_retries + 1,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

    async def _generate(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> str:
        try:
            r = await client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise _Retryable(BackendUnavailableError(f"Ollama request timed out: {e}")) from e
        except httpx.TransportError as e:
            raise _Retryable(BackendUnavailableError(f"Cannot reach Ollama at {self.settings.base_url}: {e}")) from e
        except httpx.RequestError as e:
            raise GenerationError(f"Ollama request failed: {e}") from e

        if r.status_code != 200:
            err = GenerationError(f"Ollama returned {r.status_code}: {_error_message(r)}")
            if r.status_code in RETRYABLE_STATUS:
                raise _Retryable(err)
            raise err

        try:
            data = r.json()
            completion = data["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise GenerationError(f"Malformed Ollama response: {e}") from e
        if not isinstance(completion, str):
            raise GenerationError("Malformed Ollama response: 'response' is not a string")
        return completion


def _error_message(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return r.text or r.reason_phrase
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return r.text
