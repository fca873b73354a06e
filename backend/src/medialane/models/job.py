"""Job entity - durable work queue item."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class JobType(str, Enum):
    """Job types dispatched by the orchestrator."""

    METADATA_FETCH = "METADATA_FETCH"
    METADATA_PIN = "METADATA_PIN"
    STATS_UPDATE = "STATS_UPDATE"
    WEBHOOK_DELIVER = "WEBHOOK_DELIVER"


class JobStatus(str, Enum):
    """Job lifecycle status."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"


class Job(SQLModel, table=True):
    """Queued unit of work.

    `type` is a plain string column so rows written by other producers with
    unknown types can still be claimed and drained.
    """

    __tablename__ = "jobs"  # type: ignore[assignment]
    __table_args__ = (Index("ix_jobs_status_process_after", "status", "process_after"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    type: str = Field(max_length=64)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    status: JobStatus = Field(default=JobStatus.PENDING)
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    process_after: datetime = Field(default_factory=utcnow)
    error: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
