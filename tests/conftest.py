"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from prompt_relay.compute.base import ComputeResult
from prompt_relay.errors import ComputeFailure
from prompt_relay.jobs.repository import JobRepository


class FakeClock:
    """Mutable wall clock for retention and rate-window tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedCompute:
    """Compute client that replays queued outcomes and records prompts."""

    def __init__(self, outcomes: list[dict[str, object] | str] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.default: dict[str, object] | str = {"choices": [{"message": {"content": "ok"}}]}
        self.calls: list[tuple[str, float]] = []

    def call(self, prompt: str, *, timeout_seconds: float) -> ComputeResult:
        self.calls.append((prompt, timeout_seconds))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, str):
            raise ComputeFailure(outcome)
        return ComputeResult(payload=outcome)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=UTC))


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "relay.db"


@pytest.fixture()
def repository(db_path: Path, clock: FakeClock) -> Iterator[JobRepository]:
    repo = JobRepository(db_path, claim_lease_seconds=600, clock=clock)
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()
