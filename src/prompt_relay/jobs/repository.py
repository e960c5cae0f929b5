"""Persistent job store backed by SQLModel + SQLite."""

from __future__ import annotations

import json
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import or_
from sqlalchemy import update as sa_update
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, col, select

from prompt_relay.errors import JobNotFoundError
from prompt_relay.jobs.models import JobStatus, JobView
from prompt_relay.storage.alembic_runner import upgrade_head
from prompt_relay.storage.common import (
    build_sqlite_engine,
    storage_errors,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from prompt_relay.storage.sqlmodel_models import JobRecord


class JobRepository:
    """Job lifecycle persistence with atomic claim and commit."""

    def __init__(
        self,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = 5000,
        claim_lease_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db_path = db_path
        self.claim_lease = timedelta(seconds=claim_lease_seconds)
        self._clock = clock
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        with storage_errors("migrate schema"):
            upgrade_head(self.db_path)

    def create(self, prompt: str) -> JobView:
        """Insert a new pending job and return it."""

        now = self._clock()
        with storage_errors("create job"), Session(self.engine) as session:
            row = JobRecord(
                job_id=secrets.token_hex(8),
                prompt=prompt,
                status=JobStatus.PENDING.value,
                response_json=None,
                attempts=0,
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_job_view(row)

    def get(self, job_id: str) -> JobView:
        """Return one job or raise JobNotFoundError."""

        with storage_errors("read job"), Session(self.engine) as session:
            row = session.get(JobRecord, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            return _to_job_view(row)

    def claimable_ids(self) -> list[str]:
        """Ids of pending jobs not under a live claim, oldest first. Claims nothing."""

        with storage_errors("list pending jobs"), Session(self.engine) as session:
            return list(
                session.exec(
                    select(JobRecord.job_id)
                    .where(self._claimable(self._clock()))
                    .order_by(col(JobRecord.created_at).asc(), col(JobRecord.job_id).asc()),
                ).all(),
            )

    def claim_pending(self, *, worker_id: str) -> list[JobView]:
        """Claim every currently claimable pending job, oldest first.

        Candidates are read once; each is then claimed with its own conditional
        update, so jobs taken by a concurrent pass in between are skipped.
        """

        claimed: list[JobView] = []
        for job_id in self.claimable_ids():
            job = self.claim_job(job_id=job_id, worker_id=worker_id)
            if job is not None:
                claimed.append(job)
        return claimed

    def claim_job(self, *, job_id: str, worker_id: str) -> JobView | None:
        """Atomically claim one pending job; None if it is no longer claimable."""

        now = self._clock()
        with storage_errors("claim job"), Session(self.engine) as session:
            result = session.exec(
                sa_update(JobRecord)
                .where(col(JobRecord.job_id) == job_id, self._claimable(now))
                .values(
                    claimed_by=worker_id,
                    claimed_at=to_db_datetime(now),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            row = session.get(JobRecord, job_id)
            if row is None:
                return None
            return _to_job_view(row)

    def commit_outcome(
        self,
        *,
        job_id: str,
        worker_id: str,
        status: JobStatus,
        response: dict[str, Any] | None,
        attempts: int,
    ) -> bool:
        """Write the attempt outcome and release the claim.

        Applies only while the job is still pending, claimed by ``worker_id``,
        and ``attempts`` does not go backwards. Returns False when nothing was
        written (claim lost or job already terminal/removed).
        """

        if status is JobStatus.PENDING and response is not None:
            raise ValueError("A job returned to the queue cannot carry a response.")
        if status.is_terminal and response is None:
            raise ValueError(f"Terminal status {status.value!r} requires a response payload.")

        now = self._clock()
        with storage_errors("commit job outcome"), Session(self.engine) as session:
            result = session.exec(
                sa_update(JobRecord)
                .where(
                    col(JobRecord.job_id) == job_id,
                    col(JobRecord.status) == JobStatus.PENDING.value,
                    col(JobRecord.claimed_by) == worker_id,
                    col(JobRecord.attempts) <= attempts,
                )
                .values(
                    status=status.value,
                    response_json=_dump_response(response),
                    attempts=attempts,
                    claimed_by=None,
                    claimed_at=None,
                    updated_at=to_db_datetime(now),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def cleanup(self, ttl_seconds: int) -> int:
        """Delete jobs created more than ``ttl_seconds`` ago, whatever their status."""

        cutoff = self._clock() - timedelta(seconds=ttl_seconds)
        with storage_errors("clean up jobs"), Session(self.engine) as session:
            result = session.exec(
                sa_delete(JobRecord).where(col(JobRecord.created_at) < to_db_datetime(cutoff)),
            )
            session.commit()
            return int(result.rowcount or 0)

    def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobView]:
        """List recent jobs, optionally filtered by status."""

        with storage_errors("list jobs"), Session(self.engine) as session:
            statement = select(JobRecord).order_by(col(JobRecord.created_at).desc()).limit(limit)
            if status is not None:
                statement = statement.where(JobRecord.status == status.value)
            rows = session.exec(statement).all()
        return [_to_job_view(row) for row in rows]

    def _claimable(self, now: datetime) -> ColumnElement[bool]:
        lease_cutoff = to_db_datetime(now - self.claim_lease)
        return (col(JobRecord.status) == JobStatus.PENDING.value) & or_(
            col(JobRecord.claimed_by).is_(None),
            col(JobRecord.claimed_at) < lease_cutoff,
        )


def _dump_response(response: dict[str, Any] | None) -> str | None:
    if response is None:
        return None
    return json.dumps(response, ensure_ascii=False)


def _load_response(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    parsed = json.loads(raw)
    if isinstance(parsed, dict):
        return parsed
    return {"value": parsed}


def _to_job_view(row: JobRecord) -> JobView:
    return JobView(
        job_id=row.job_id,
        prompt=row.prompt,
        status=JobStatus(row.status),
        response=_load_response(row.response_json),
        attempts=row.attempts,
        claimed_by=row.claimed_by,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
