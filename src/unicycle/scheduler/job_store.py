"""
Persistent storage for scheduled jobs.

The store keeps the ordered job list in memory and rewrites the whole list to
a pretty-printed JSON file after every mutation. Writes go to a temporary
sibling file which is then renamed over the target, so a crash leaves either
the previous snapshot or the new one on disk. The in-memory list is only
swapped once the new snapshot is on disk, so a failed write leaves both sides
as they were.
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime
import json
from pathlib import Path
from typing import Any, Callable, Dict, List

from unicycle.datatypes.scheduled_job import ScheduledJob
from unicycle.scheduler.errors import JobNotFoundError, ValidationError
from unicycle.util.file_utils import write_atomic
from unicycle.util.logger import get_logger

logger = get_logger("job_store")

JobPredicate = Callable[[ScheduledJob], bool]


def _is_aware(moment: datetime.datetime | None) -> bool:
    return moment is None or (moment.tzinfo is not None and moment.utcoffset() is not None)


class JobStore:
    """Owner of the durable, ordered collection of scheduled jobs.

    Reads return copies of the list so callers can iterate while the loop
    mutates the store. Mutations are serialized by an ``asyncio.Lock`` and
    each one persists the full collection before returning.

    Records that cannot be read on load are logged and kept verbatim, so they
    are written back on every save instead of being silently dropped.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._jobs: List[ScheduledJob] = []
        self._unreadable: List[Any] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Loading / persistence
    # ------------------------------------------------------------------

    def load(self) -> List[ScheduledJob]:
        """Load jobs from disk, treating a missing file as an empty schedule."""
        self._jobs = []
        self._unreadable = []
        if not self.path.exists():
            logger.info("[JOB STORE] No schedule at %s, starting empty.", self.path)
            return []

        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        for index, entry in enumerate(raw):
            try:
                self._jobs.append(ScheduledJob.from_dict(entry))
            except (KeyError, ValueError, TypeError, AttributeError) as exc:
                record_id = entry.get("id") if isinstance(entry, dict) else None
                logger.error(
                    "[JOB STORE] Keeping unreadable record #%d (id=%s) in %s untouched: %s",
                    index, record_id, self.path, exc,
                )
                self._unreadable.append(entry)

        logger.info("[JOB STORE] Loaded %d scheduled jobs from %s", len(self._jobs), self.path)
        return list(self._jobs)

    @property
    def unreadable_records(self) -> List[Any]:
        """Raw records that failed to load, in file order."""
        return list(self._unreadable)

    async def _persist(self, jobs: List[ScheduledJob]) -> None:
        records: List[Dict[str, Any]] = [job.to_dict() for job in jobs]
        payload = json.dumps(records + self._unreadable, indent=2)
        await asyncio.to_thread(write_atomic, self.path, payload)

    async def _commit(self, jobs: List[ScheduledJob]) -> None:
        await self._persist(jobs)
        self._jobs = jobs

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_jobs(self, predicate: JobPredicate | None = None) -> List[ScheduledJob]:
        """Return a snapshot of all jobs, optionally filtered, in store order."""
        if predicate is None:
            return list(self._jobs)
        return [job for job in self._jobs if predicate(job)]

    def get(self, job_id: str) -> ScheduledJob | None:
        """Return the job with ``job_id`` or ``None``."""
        return next((job for job in self._jobs if job.id == job_id), None)

    def find(self, predicate: JobPredicate) -> ScheduledJob | None:
        """Return the first job matching ``predicate`` or ``None``."""
        return next((job for job in self._jobs if predicate(job)), None)

    def __contains__(self, job_id: object) -> bool:
        return any(job.id == job_id for job in self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(job: ScheduledJob, operation: str) -> None:
        for name in ("created_at", "execute_at", "last_executed_at"):
            if not _is_aware(getattr(job, name)):
                raise ValidationError(f"{operation} was passed job {job.id} with a timezone-naive {name}")
        if not job.has_positive_interval():
            raise ValidationError(
                f"{operation} was passed a relative repeating job with non-positive interval: {job.to_discord_string()}"
            )

    def _index_of(self, job_id: str) -> int:
        for index, existing in enumerate(self._jobs):
            if existing.id == job_id:
                return index
        raise JobNotFoundError(job_id)

    async def insert(self, job: ScheduledJob) -> None:
        """Validate and append a new job, then persist."""
        self._validate(job, "insert()")
        async with self._lock:
            await self._commit([*self._jobs, job])
        logger.debug("[JOB STORE] Created job %s", job.to_discord_string())

    async def replace(self, job_id: str, job: ScheduledJob) -> None:
        """Validate ``job`` and put it where ``job_id`` currently sits, then persist."""
        self._validate(job, "replace()")
        async with self._lock:
            jobs = list(self._jobs)
            jobs[self._index_of(job_id)] = job
            await self._commit(jobs)
        logger.debug("[JOB STORE] Modified job %s", job_id)

    async def remove(self, job: ScheduledJob) -> None:
        """Remove ``job`` (matched by id), then persist."""
        async with self._lock:
            jobs = list(self._jobs)
            del jobs[self._index_of(job.id)]
            await self._commit(jobs)
        logger.debug("[JOB STORE] Deleted job %s", job.id)

    async def advance(self, job: ScheduledJob) -> ScheduledJob | None:
        """Reschedule or retire ``job`` after it ran, then persist.

        Returns the rescheduled job, or ``None`` when it was deleted or was
        already removed by someone else while it was running. The stored job
        is replaced by an advanced copy, so a failed write leaves it untouched.
        """
        async with self._lock:
            try:
                index = self._index_of(job.id)
            except JobNotFoundError:
                logger.debug("[JOB STORE] Job %s vanished before it could be advanced", job.id)
                return None

            jobs = list(self._jobs)
            advanced = dataclasses.replace(jobs[index])
            if not advanced.advance():
                del jobs[index]
                await self._commit(jobs)
                return None

            jobs[index] = advanced
            await self._commit(jobs)
            return advanced

    def due_jobs(self, now: datetime.datetime) -> List[ScheduledJob]:
        """Return jobs whose next execution time is at or before ``now``.

        A job whose time cannot be compared with ``now`` is logged and left out,
        so it cannot hold up the rest of the schedule.
        """
        due: List[ScheduledJob] = []
        for job in list(self._jobs):
            try:
                if job.is_due(now):
                    due.append(job)
            except TypeError as exc:
                logger.error("[JOB STORE] Cannot check whether job %s is due: %s", job.id, exc)
        return due
