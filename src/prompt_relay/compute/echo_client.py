"""Offline compute backend for local runs and CLI tests."""

from __future__ import annotations

from prompt_relay.compute.base import ComputeResult


class EchoComputeClient:
    """Answers every prompt with a chat-completion shaped echo."""

    def __init__(self, *, model: str = "echo") -> None:
        self.model = model

    def call(self, prompt: str, *, timeout_seconds: float) -> ComputeResult:  # noqa: ARG002
        return ComputeResult(
            payload={
                "object": "chat.completion",
                "model": self.model,
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": prompt},
                        "finish_reason": "stop",
                    },
                ],
            },
        )
