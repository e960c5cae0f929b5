"""Compute provider clients."""

from prompt_relay.compute.base import ComputeClient, ComputeResult
from prompt_relay.compute.echo_client import EchoComputeClient
from prompt_relay.compute.http_client import ChatCompletionsClient

__all__ = [
    "ChatCompletionsClient",
    "ComputeClient",
    "ComputeResult",
    "EchoComputeClient",
]
