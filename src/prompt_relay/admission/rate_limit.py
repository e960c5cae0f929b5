"""Fixed-window request counters with an atomic check-and-increment."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, select

from prompt_relay.storage.common import build_sqlite_engine, storage_errors, utc_now
from prompt_relay.storage.sqlmodel_models import RateCounter


class RateLimitRepository:
    """Per-client counters keyed by (client_key, window index)."""

    def __init__(
        self,
        db_path: Path,
        *,
        window_seconds: int = 3600,
        sqlite_busy_timeout_ms: int = 5000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")
        self.db_path = db_path
        self.window_seconds = window_seconds
        self._clock = clock
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        self.engine.dispose()

    def current_window(self) -> int:
        return int(self._clock().timestamp()) // self.window_seconds

    def try_acquire(self, *, client_key: str, limit: int) -> bool:
        """Count one request if the client is still under ``limit`` in this window.

        A single upsert either inserts the counter at 1 or increments it while
        ``count < limit``; the request is admitted iff one row was affected.
        """

        if limit <= 0:
            return False
        window = self.current_window()
        statement = sqlite_insert(RateCounter).values(
            client_key=client_key,
            window_index=window,
            request_count=1,
        )
        statement = statement.on_conflict_do_update(
            index_elements=["client_key", "window_index"],
            set_={"request_count": col(RateCounter.request_count) + 1},
            where=col(RateCounter.request_count) < limit,
        )
        with storage_errors("update rate limit"), Session(self.engine) as session:
            result = session.exec(statement)
            admitted = result.rowcount == 1
            session.commit()
            return admitted

    def current_count(self, *, client_key: str) -> int:
        """Requests counted for ``client_key`` in the current window."""

        with storage_errors("read rate limit"), Session(self.engine) as session:
            count = session.exec(
                select(RateCounter.request_count).where(
                    col(RateCounter.client_key) == client_key,
                    col(RateCounter.window_index) == self.current_window(),
                ),
            ).one_or_none()
        return int(count or 0)
