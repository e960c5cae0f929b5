"""Call contract for the external compute provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(slots=True)
class ComputeResult:
    """Structured provider payload for one successful call."""

    payload: dict[str, Any]


class ComputeClient(Protocol):
    """Protocol implemented by compute providers.

    Implementations enforce ``timeout_seconds``, never retry, and raise
    ``prompt_relay.errors.ComputeFailure`` with a readable cause on any
    timeout, transport error, HTTP error status, or unparseable body.
    """

    def call(self, prompt: str, *, timeout_seconds: float) -> ComputeResult:
        """Send ``prompt`` to the provider and return its result."""
