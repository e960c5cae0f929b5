"""Chat-completions HTTP client with bounded timeout and no retries."""

from __future__ import annotations

import logging

import httpx

from prompt_relay.compute.base import ComputeResult
from prompt_relay.errors import ComputeFailure

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
ERROR_BODY_PREVIEW_CHARS = 300


class ChatCompletionsClient:
    """Posts a single user message to an OpenAI-compatible endpoint."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        model: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.model = model
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport or httpx.HTTPTransport(retries=0),
        )

    def call(self, prompt: str, *, timeout_seconds: float) -> ComputeResult:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        timeout = httpx.Timeout(
            timeout_seconds,
            connect=min(DEFAULT_CONNECT_TIMEOUT_SECONDS, timeout_seconds),
        )
        try:
            response = self._client.post(self.url, json=payload, timeout=timeout)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout calling %s after %.1fs", self.url, timeout_seconds)
            raise ComputeFailure(f"Provider timeout after {timeout_seconds:g}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("Transport error calling %s: %s", self.url, exc)
            raise ComputeFailure(f"Provider transport error: {exc}") from exc

        if response.status_code >= 400:  # noqa: PLR2004
            preview = response.text[:ERROR_BODY_PREVIEW_CHARS]
            raise ComputeFailure(
                f"Provider error HTTP {response.status_code}: {preview}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except (ValueError, RecursionError) as exc:
            raise ComputeFailure(
                "Invalid JSON from provider",
                status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise ComputeFailure(
                "Invalid JSON from provider: expected an object",
                status_code=response.status_code,
            )
        return ComputeResult(payload=body)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ChatCompletionsClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
