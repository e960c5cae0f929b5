"""SQLModel ORM tables for job and rate-limit storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, PrimaryKeyConstraint, Text
from sqlmodel import Field, SQLModel


class JobRecord(SQLModel, table=True):
    __tablename__ = "requests"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_requests_queue", "status", "created_at"),)

    job_id: str = Field(primary_key=True)
    prompt: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(index=True)
    response_json: str | None = Field(default=None, sa_column=Column(Text))
    attempts: int = Field(default=0)
    claimed_by: str | None = Field(default=None, index=True)
    claimed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class RateCounter(SQLModel, table=True):
    __tablename__ = "rate_limit"  # type: ignore[bad-override]
    __table_args__ = (PrimaryKeyConstraint("client_key", "window_index", name="pk_rate_limit"),)

    client_key: str
    window_index: int
    request_count: int = Field(default=0)
