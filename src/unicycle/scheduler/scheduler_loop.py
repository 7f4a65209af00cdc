"""Background loop that runs due scheduled jobs.

Every ``interval`` seconds the loop takes a snapshot of the job store, picks
the jobs whose execution time has passed and runs them one after another in
store order. Each job runs inside its own failure boundary and is advanced
(rescheduled or deleted) whatever its outcome, so one broken job can neither
stop the loop nor be retried on every tick.
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Callable, List

import discord

from unicycle.datatypes.scheduled_job import utcnow
from unicycle.executors.base import ExecutionOutcome
from unicycle.executors.dispatcher import JobDispatcher
from unicycle.scheduler.errors import ConfigurationError
from unicycle.scheduler.job_store import JobStore
from unicycle.util.logger import get_logger

logger = get_logger("scheduler_loop")


class SchedulerLoop:
    """
    Periodic runner for persistent scheduled jobs.

    Args:
        store: Job store to read due jobs from and advance jobs in.
        dispatcher: Routes each job to its executor.
        resolve_guild: Returns the default guild, or ``None`` if it is unreachable.
        get_interval: Callable returning the delay between ticks in seconds.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: JobDispatcher,
        resolve_guild: Callable[[], discord.Guild | None],
        get_interval: Callable[[], float],
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self._resolve_guild = resolve_guild
        self._get_interval = get_interval
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self, now: datetime.datetime | None = None) -> List[ExecutionOutcome]:
        """Run every job due at ``now`` and return their outcomes in order.

        Raises:
            ConfigurationError: If there are due jobs but the default guild is unreachable.
        """
        now = now or self._clock()
        due_jobs = self.store.due_jobs(now)
        if not due_jobs:
            return []

        guild = self._resolve_guild()
        if guild is None:
            raise ConfigurationError("Failed to get default guild")

        outcomes: List[ExecutionOutcome] = []
        for job in due_jobs:
            logger.debug(
                "[SCHEDULER] Executing %s job %s since it was scheduled to execute at %s",
                job.action.kind, job.id, job.execute_at.isoformat(),
            )
            try:
                outcome = await self.dispatcher.execute(job, guild)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[SCHEDULER] Scheduled job threw an exception when trying to execute! "
                    "Type: %s Message: %s Job: %s (%s)",
                    type(exc).__name__, exc, job.id, job.action.kind,
                    exc_info=exc,
                )
                outcome = ExecutionOutcome.failed(job.id, exc)
            else:
                if outcome.detail:
                    logger.debug("[SCHEDULER] Job %s %s: %s", job.id, outcome.status, outcome.detail)

            outcomes.append(outcome)
            try:
                await self.store.advance(job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[SCHEDULER] Failed to advance job %s (%s), it stays due: %s",
                    job.id, job.action.kind, exc,
                    exc_info=exc,
                )

        return outcomes

    async def _run_loop(self) -> None:
        """Wait, tick, repeat. Tick errors are logged and the loop carries on."""
        logger.info("[SCHEDULER] Starting scheduler loop (interval=%.1fs)", self._get_interval())
        try:
            while True:
                await asyncio.sleep(self._get_interval())
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except ConfigurationError as exc:
                    logger.error("[SCHEDULER] Skipping tick: %s", exc)
                except Exception as exc:
                    logger.error("[SCHEDULER] Unexpected error during tick: %s", exc, exc_info=exc)
        except asyncio.CancelledError:
            logger.info("[SCHEDULER] Scheduler loop cancelled")
            raise

    def start(self) -> bool:
        """Arm the loop once. Later calls are ignored and return ``False``."""
        if self._started:
            logger.debug("[SCHEDULER] Scheduler loop already started")
            return False
        self._started = True
        self._task = asyncio.create_task(self._run_loop(), name="unicycle-scheduler-loop")
        return True

    async def shutdown(self) -> None:
        """Stop the loop. A job already executing is cancelled with it."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[SCHEDULER] Scheduler shutdown complete")
