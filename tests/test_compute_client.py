"""Tests for the chat-completions client and the echo backend."""

from __future__ import annotations

import json

import allure
import httpx
import pytest

from prompt_relay.compute import ChatCompletionsClient, EchoComputeClient
from prompt_relay.errors import ComputeFailure

pytestmark = [
    allure.epic("Compute"),
    allure.feature("Provider Call Contract"),
]

PROVIDER_URL = "https://provider.example.com/v1/chat/completions"


def _client(handler) -> ChatCompletionsClient:
    return ChatCompletionsClient(
        url=PROVIDER_URL,
        api_key="sk-test",
        model="gpt-4",
        transport=httpx.MockTransport(handler),
    )


class TestChatCompletionsClient:
    def test_posts_prompt_and_returns_provider_json(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cmpl-1", "choices": []})

        with _client(handler) as client:
            result = client.call("Hello there", timeout_seconds=5)

        assert result.payload == {"id": "cmpl-1", "choices": []}
        assert len(seen) == 1
        assert seen[0].headers["Authorization"] == "Bearer sk-test"
        assert json.loads(seen[0].content) == {
            "model": "gpt-4",
            "messages": [{"role": "user", "content": "Hello there"}],
        }

    def test_http_error_status_is_failure_with_cause(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream overloaded")

        with _client(handler) as client, pytest.raises(ComputeFailure) as excinfo:
            client.call("prompt", timeout_seconds=5)

        assert excinfo.value.status_code == 503
        assert "HTTP 503" in excinfo.value.cause
        assert "upstream overloaded" in excinfo.value.cause

    def test_timeout_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with _client(handler) as client, pytest.raises(ComputeFailure, match="timeout"):
            client.call("prompt", timeout_seconds=1.5)

    def test_transport_error_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client, pytest.raises(ComputeFailure, match="transport"):
            client.call("prompt", timeout_seconds=5)

    def test_non_json_body_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        with _client(handler) as client, pytest.raises(ComputeFailure, match="Invalid JSON"):
            client.call("prompt", timeout_seconds=5)

    def test_non_object_json_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["not", "an", "object"])

        with _client(handler) as client, pytest.raises(ComputeFailure, match="expected an object"):
            client.call("prompt", timeout_seconds=5)

    def test_client_does_not_retry(self):
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(500, text="boom")

        with _client(handler) as client, pytest.raises(ComputeFailure):
            client.call("prompt", timeout_seconds=5)
        assert len(calls) == 1


class TestEchoComputeClient:
    def test_echoes_prompt_as_assistant_message(self):
        result = EchoComputeClient(model="echo-1").call("ping", timeout_seconds=1)

        assert result.payload["model"] == "echo-1"
        assert result.payload["choices"][0]["message"] == {"role": "assistant", "content": "ping"}


def test_deeply_nested_body_is_failure():
    depth = 100_000

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"[" * depth + b"]" * depth)

    with _client(handler) as client, pytest.raises(ComputeFailure, match="Invalid JSON"):
        client.call("prompt", timeout_seconds=5)
