"""Shared result types for job executors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ExecutionStatus(Enum):
    """What happened when a job was executed."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Result of running one scheduled job.

    Attributes:
        job_id: The job that ran.
        status: Completed, skipped (nothing to do) or failed.
        detail: Human readable reason for a skip or failure.
        error: Exception type name for failures.
    """
    job_id: str
    status: ExecutionStatus
    detail: str = ""
    error: str | None = None

    @classmethod
    def completed(cls, job_id: str, detail: str = "") -> "ExecutionOutcome":
        return cls(job_id, ExecutionStatus.COMPLETED, detail)

    @classmethod
    def skipped(cls, job_id: str, detail: str) -> "ExecutionOutcome":
        return cls(job_id, ExecutionStatus.SKIPPED, detail)

    @classmethod
    def failed(cls, job_id: str, exc: BaseException) -> "ExecutionOutcome":
        return cls(job_id, ExecutionStatus.FAILED, str(exc), type(exc).__name__)
