"""Worker pass: claim pending jobs, call the provider, commit outcomes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from uuid import uuid4

from prompt_relay.compute.base import ComputeClient
from prompt_relay.errors import ComputeFailure, PersistenceError
from prompt_relay.jobs.models import JobStatus, JobView, PassSummary
from prompt_relay.jobs.repository import JobRepository
from prompt_relay.storage.common import utc_now

logger = logging.getLogger(__name__)


class JobWorker:
    """Runs sequential passes over the pending-job snapshot."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: JobRepository,
        compute: ComputeClient,
        ttl_seconds: int = 86_400,
        max_retries: int = 3,
        backoff_seconds: float = 2.0,
        compute_timeout_seconds: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repository = repository
        self.compute = compute
        self.ttl_seconds = ttl_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.compute_timeout_seconds = compute_timeout_seconds
        self._sleep = sleep

    def run_pass(self) -> PassSummary:
        """Clean up expired jobs, then process the jobs pending at pass start.

        The pending set is snapshotted once; each job is claimed right before
        its compute call, so a claim lease only has to cover one call. Jobs a
        concurrent pass claims first are skipped. Compute failures are absorbed
        into the summary; storage failures propagate to the caller.
        """

        summary = PassSummary()
        pass_id = f"pass-{uuid4().hex[:12]}"

        summary.cleaned_up = self.repository.cleanup(self.ttl_seconds)
        if summary.cleaned_up:
            logger.info("Removed %d expired jobs", summary.cleaned_up)

        job_ids = self.repository.claimable_ids()
        logger.debug("Pass %s found %d pending jobs", pass_id, len(job_ids))
        for job_id in job_ids:
            job = self.repository.claim_job(job_id=job_id, worker_id=pass_id)
            if job is None:
                logger.debug("Job %s was claimed by another pass", job_id)
                continue
            self._process(job=job, pass_id=pass_id, summary=summary)

        summary.finished_at = utc_now()
        return summary

    def _process(self, *, job: JobView, pass_id: str, summary: PassSummary) -> None:
        attempts = job.attempts + 1
        try:
            result = self.compute.call(job.prompt, timeout_seconds=self.compute_timeout_seconds)
        except ComputeFailure as error:
            cause = error.cause
        except PersistenceError:
            raise
        except Exception as error:  # noqa: BLE001
            logger.exception("Unexpected compute error for job %s", job.job_id)
            cause = f"Unexpected compute error: {type(error).__name__}: {error}"
        else:
            if self._commit(
                job=job,
                pass_id=pass_id,
                status=JobStatus.DONE,
                response=result.payload,
                attempts=attempts,
            ):
                summary.processed += 1
            else:
                summary.claim_lost += 1
            return

        self._handle_failure(
            job=job,
            pass_id=pass_id,
            attempts=attempts,
            cause=cause,
            summary=summary,
        )

    def _handle_failure(  # noqa: PLR0913
        self,
        *,
        job: JobView,
        pass_id: str,
        attempts: int,
        cause: str,
        summary: PassSummary,
    ) -> None:
        logger.warning("job_failed id=%s attempts=%d error=%s", job.job_id, attempts, cause)
        if attempts >= self.max_retries:
            if self._commit(
                job=job,
                pass_id=pass_id,
                status=JobStatus.ERROR,
                response={"error": cause},
                attempts=attempts,
            ):
                summary.failed += 1
            else:
                summary.claim_lost += 1
            return

        if not self._commit(
            job=job,
            pass_id=pass_id,
            status=JobStatus.PENDING,
            response=None,
            attempts=attempts,
        ):
            summary.claim_lost += 1
            return
        summary.retried += 1
        delay = self.compute_backoff(attempts)
        if delay > 0:
            self._sleep(delay)

    def compute_backoff(self, attempts: int) -> float:
        """Pass-local delay after a retryable failure; grows with the attempt count."""

        return self.backoff_seconds * attempts

    def _commit(  # noqa: PLR0913
        self,
        *,
        job: JobView,
        pass_id: str,
        status: JobStatus,
        response: dict[str, object] | None,
        attempts: int,
    ) -> bool:
        committed = self.repository.commit_outcome(
            job_id=job.job_id,
            worker_id=pass_id,
            status=status,
            response=response,
            attempts=attempts,
        )
        if not committed:
            logger.warning(
                "Claim lost before commit: id=%s attempts=%d status=%s",
                job.job_id,
                attempts,
                status.value,
            )
        return committed
