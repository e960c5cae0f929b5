"""Controllers for relay CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from prompt_relay.admission.gate import AdmissionGate
from prompt_relay.admission.rate_limit import RateLimitRepository
from prompt_relay.admission.signing import sign_prompt
from prompt_relay.compute.base import ComputeClient
from prompt_relay.compute.echo_client import EchoComputeClient
from prompt_relay.compute.http_client import ChatCompletionsClient
from prompt_relay.config import Settings
from prompt_relay.jobs.models import JobStatus
from prompt_relay.jobs.repository import JobRepository
from prompt_relay.jobs.scheduler import PassScheduler
from prompt_relay.jobs.services import RelayService
from prompt_relay.jobs.worker import JobWorker


@dataclass(slots=True)
class SubmitCommand:
    """CLI input for prompt submission."""

    db_path: Path | None
    prompt: str | None
    signature: str | None
    proxy_key: str | None
    client_key: str


@dataclass(slots=True)
class FetchCommand:
    """CLI input for job lookup."""

    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class WorkerCommand:
    """CLI input for worker passes."""

    db_path: Path | None
    once: bool
    max_passes: int | None = None


@dataclass(slots=True)
class ListJobsCommand:
    """CLI input for job listing."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class SignCommand:
    """CLI input for computing a prompt signature."""

    prompt: str
    secret: str | None


class RelayCliController:
    """Builds components from settings and renders command results."""

    def submit(self, command: SubmitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_admission()
        with _repository(settings) as repository, _rate_limits(settings) as rate_limits:
            service = RelayService(
                repository=repository,
                gate=AdmissionGate(settings=settings.admission, rate_limits=rate_limits),
            )
            result = service.submit(
                prompt=command.prompt,
                signature=command.signature,
                proxy_key=command.proxy_key,
                client_key=command.client_key,
            )
        return [_render(result)]

    def fetch(self, command: FetchCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            result = RelayService(repository=repository).fetch(command.job_id)
        return [_render(result)]

    def run_worker(self, command: WorkerCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_worker()
        compute = build_compute_client(settings)
        try:
            with _repository(settings) as repository:
                scheduler = PassScheduler(
                    worker=JobWorker(
                        repository=repository,
                        compute=compute,
                        ttl_seconds=settings.queue.ttl_seconds,
                        max_retries=settings.queue.max_retries,
                        backoff_seconds=settings.queue.backoff_seconds,
                        compute_timeout_seconds=settings.compute.timeout_seconds,
                    ),
                    interval_seconds=settings.queue.pass_interval_seconds,
                )
                service = RelayService(repository=repository, scheduler=scheduler)
                if command.once:
                    return [_render(service.trigger_pass())]
                passes = service.run_continuous(max_passes=command.max_passes)
        finally:
            if isinstance(compute, ChatCompletionsClient):
                compute.close()
        return [f"Scheduler stopped after {passes} passes"]

    def list_jobs(self, command: ListJobsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status = JobStatus(command.status) if command.status else None
        with _repository(settings) as repository:
            jobs = repository.list_jobs(status=status, limit=command.limit)
        if not jobs:
            return ["No jobs found."]
        return [
            f"{job.job_id} status={job.status.value} attempts={job.attempts} "
            f"created_at={job.created_at.isoformat()} updated_at={job.updated_at.isoformat()}"
            for job in jobs
        ]

    def sign(self, command: SignCommand) -> list[str]:
        secret = command.secret
        if secret is None:
            secret = Settings.from_env().admission.secret
        if not secret:
            raise ValueError("A secret is required: pass --secret or set PROMPT_RELAY_SECRET.")
        return [sign_prompt(command.prompt, secret)]

    def health(self, db_path: Path | None) -> list[str]:
        settings = Settings.from_env(db_path=db_path)
        with _repository(settings) as repository:
            result = RelayService(repository=repository).health()
        return [_render(result)]


def build_compute_client(settings: Settings) -> ComputeClient:
    """Create the compute backend selected by PROMPT_RELAY_COMPUTE_BACKEND."""

    if settings.compute.backend == "echo":
        return EchoComputeClient(model=settings.compute.model)
    return ChatCompletionsClient(
        url=settings.compute.provider_url,
        api_key=settings.compute.api_key,
        model=settings.compute.model,
    )


def _render(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


@contextmanager
def _repository(settings: Settings) -> Iterator[JobRepository]:
    repository = JobRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        claim_lease_seconds=settings.queue.claim_lease_seconds,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _rate_limits(settings: Settings) -> Iterator[RateLimitRepository]:
    rate_limits = RateLimitRepository(
        db_path=settings.db_path,
        window_seconds=settings.admission.rate_window_seconds,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        yield rate_limits
    finally:
        rate_limits.close()
