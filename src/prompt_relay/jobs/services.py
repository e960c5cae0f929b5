"""Boundary operations: submit, fetch, and pass triggers."""

from __future__ import annotations

from typing import Any

from prompt_relay.admission.gate import AdmissionGate
from prompt_relay.errors import ValidationError
from prompt_relay.jobs.repository import JobRepository
from prompt_relay.jobs.scheduler import PassScheduler
from prompt_relay.storage.common import utc_now


class RelayService:
    """Transport-agnostic entry points used by the CLI and any future server."""

    def __init__(
        self,
        *,
        repository: JobRepository,
        gate: AdmissionGate | None = None,
        scheduler: PassScheduler | None = None,
    ) -> None:
        self.repository = repository
        self.gate = gate
        self.scheduler = scheduler

    def submit(
        self,
        *,
        prompt: str | None,
        signature: str | None,
        proxy_key: str | None,
        client_key: str,
    ) -> dict[str, Any]:
        """Admit a signed prompt and enqueue it."""

        gate = self._require_gate()
        gate.require_proxy_key(proxy_key)
        gate.hit_rate_limit(client_key)
        if not prompt or not signature:
            raise ValidationError("Missing prompt or sign")
        gate.verify_signature(prompt=prompt, signature=signature)
        job = self.repository.create(prompt)
        return {"id": job.job_id, "status": job.status.value}

    def fetch(self, job_id: str) -> dict[str, Any]:
        if not job_id:
            raise ValidationError("Missing id")
        return self.repository.get(job_id).to_public_dict()

    def trigger_pass(self) -> dict[str, Any]:
        """Run exactly one worker pass synchronously."""

        return self._require_scheduler().trigger().to_dict()

    def run_continuous(self, *, max_passes: int | None = None) -> int:
        return self._require_scheduler().run_continuous(max_passes=max_passes)

    def health(self) -> dict[str, Any]:
        return {"status": "ok", "time": int(utc_now().timestamp())}

    def _require_gate(self) -> AdmissionGate:
        if self.gate is None:
            raise RuntimeError("RelayService was built without an admission gate.")
        return self.gate

    def _require_scheduler(self) -> PassScheduler:
        if self.scheduler is None:
            raise RuntimeError("RelayService was built without a pass scheduler.")
        return self.scheduler
