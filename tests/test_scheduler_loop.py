"""
Tests for the scheduler loop: due job selection, failure isolation and advancement.
"""

import asyncio
import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import T0
from unicycle.datatypes.scheduled_job import EchoAction, RepeatType, ScheduledJob, UnknownAction
from unicycle.executors.base import ExecutionOutcome, ExecutionStatus
from unicycle.executors.dispatcher import JobDispatcher
from unicycle.executors.echo import EchoExecutor
from unicycle.scheduler import job_store as job_store_module
from unicycle.scheduler.errors import ConfigurationError, ExternalServiceError
from unicycle.scheduler.job_store import JobStore
from unicycle.scheduler.scheduler_loop import SchedulerLoop

HOUR = datetime.timedelta(hours=1)


def echo_job(repeat: RepeatType, execute_at: datetime.datetime, created_at: datetime.datetime = T0) -> ScheduledJob:
    return ScheduledJob.create(EchoAction(99, "ping"), execute_at, repeat, created_at=created_at)


def make_loop(store: JobStore, dispatcher, guild=None) -> SchedulerLoop:
    resolved = guild if guild is not None else MagicMock(id=1)
    return SchedulerLoop(store, dispatcher, resolve_guild=lambda: resolved, get_interval=lambda: 0.01)


def completing_dispatcher() -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.execute = AsyncMock(side_effect=lambda job, guild: ExecutionOutcome.completed(job.id))
    return dispatcher


@pytest.mark.asyncio
async def test_tick_without_due_jobs_does_nothing(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    await store.insert(echo_job(RepeatType.NONE, T0 + HOUR))
    dispatcher = completing_dispatcher()

    assert await make_loop(store, dispatcher).tick(now=T0) == []
    dispatcher.execute.assert_not_called()


@pytest.mark.asyncio
async def test_one_shot_job_runs_once_and_is_deleted(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.NONE, T0)
    await store.insert(job)
    dispatcher = completing_dispatcher()
    loop = make_loop(store, dispatcher)

    outcomes = await loop.tick(now=T0 + datetime.timedelta(seconds=5))

    assert [outcome.status for outcome in outcomes] == [ExecutionStatus.COMPLETED]
    assert job.id not in store
    assert await loop.tick(now=T0 + HOUR) == []
    dispatcher.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_daily_job_moves_forward_one_day(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.DAILY, T0, created_at=T0 - HOUR)
    await store.insert(job)
    dispatcher = completing_dispatcher()
    loop = make_loop(store, dispatcher)

    await loop.tick(now=T0)

    stored = store.get(job.id)
    assert stored.execute_at == T0 + datetime.timedelta(days=1)
    assert stored.last_executed_at == T0
    assert await loop.tick(now=T0 + HOUR) == []
    assert dispatcher.execute.await_count == 1


@pytest.mark.asyncio
async def test_relative_job_keeps_its_interval(tmp_path: Path) -> None:
    interval = datetime.timedelta(minutes=10)
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.RELATIVE, T0 + interval)
    await store.insert(job)

    await make_loop(store, completing_dispatcher()).tick(now=T0 + interval)

    assert store.get(job.id).execute_at == T0 + 2 * interval


@pytest.mark.asyncio
async def test_failing_job_does_not_block_the_next(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    first = echo_job(RepeatType.NONE, T0)
    second = echo_job(RepeatType.NONE, T0)
    await store.insert(first)
    await store.insert(second)

    async def execute(job, guild):
        if job.id == first.id:
            raise ExternalServiceError("discord", "Missing Permissions", status=403)
        return ExecutionOutcome.completed(job.id)

    dispatcher = MagicMock()
    dispatcher.execute = AsyncMock(side_effect=execute)

    outcomes = await make_loop(store, dispatcher).tick(now=T0)

    assert [outcome.job_id for outcome in outcomes] == [first.id, second.id]
    assert outcomes[0].status is ExecutionStatus.FAILED
    assert outcomes[0].error == "ExternalServiceError"
    assert outcomes[1].status is ExecutionStatus.COMPLETED
    # Failed jobs are still advanced; a one-shot failure is not retried.
    assert len(store) == 0


@pytest.mark.asyncio
async def test_missing_guild_aborts_tick_without_advancing(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.DAILY, T0)
    await store.insert(job)
    dispatcher = completing_dispatcher()
    loop = SchedulerLoop(store, dispatcher, resolve_guild=lambda: None, get_interval=lambda: 0.01)

    with pytest.raises(ConfigurationError):
        await loop.tick(now=T0)

    dispatcher.execute.assert_not_called()
    assert store.get(job.id).execute_at == T0


@pytest.mark.asyncio
async def test_unknown_action_fails_but_still_advances(tmp_path: Path, directory, guild) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = ScheduledJob.create(UnknownAction("kick", {"user": 5}), T0, RepeatType.NONE, created_at=T0)
    await store.insert(job)
    dispatcher = JobDispatcher(MagicMock(), MagicMock(), EchoExecutor(directory), MagicMock())

    outcomes = await make_loop(store, dispatcher, guild).tick(now=T0)

    assert outcomes[0].status is ExecutionStatus.FAILED
    assert outcomes[0].detail == "kick is currently not supported."
    assert job.id not in store


@pytest.mark.asyncio
async def test_job_removed_while_running_is_not_restored(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.DAILY, T0)
    await store.insert(job)

    async def execute(running, guild):
        await store.remove(running)
        return ExecutionOutcome.completed(running.id)

    dispatcher = MagicMock()
    dispatcher.execute = AsyncMock(side_effect=execute)

    await make_loop(store, dispatcher).tick(now=T0)

    assert job.id not in store


@pytest.mark.asyncio
async def test_echo_job_end_to_end(tmp_path: Path, directory, guild) -> None:
    channel = MagicMock()
    directory.resolve_text_channel.return_value = channel
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.WEEKLY, T0)
    await store.insert(job)
    dispatcher = JobDispatcher(MagicMock(), MagicMock(), EchoExecutor(directory), MagicMock())

    await make_loop(store, dispatcher, guild).tick(now=T0)

    directory.send_channel_message.assert_awaited_once_with(channel, "ping")
    assert store.get(job.id).execute_at == T0 + datetime.timedelta(days=7)


@pytest.mark.asyncio
async def test_start_is_idempotent_and_shutdown_stops_the_task(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    loop = make_loop(store, completing_dispatcher())

    assert loop.start() is True
    assert loop.start() is False
    assert loop.is_running

    await asyncio.sleep(0.05)
    await loop.shutdown()

    assert not loop.is_running
    assert loop.start() is False


@pytest.mark.asyncio
async def test_background_loop_runs_due_jobs(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    job = echo_job(RepeatType.NONE, T0)
    await store.insert(job)
    dispatcher = completing_dispatcher()
    loop = make_loop(store, dispatcher)

    loop.start()
    for _ in range(50):
        if job.id not in store:
            break
        await asyncio.sleep(0.01)
    await loop.shutdown()

    dispatcher.execute.assert_awaited_once()
    assert job.id not in store


@pytest.mark.asyncio
async def test_background_loop_survives_missing_guild(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    await store.insert(echo_job(RepeatType.DAILY, T0))
    resolve_guild = MagicMock(return_value=None)
    loop = SchedulerLoop(store, completing_dispatcher(), resolve_guild=resolve_guild, get_interval=lambda: 0.01)

    loop.start()
    await asyncio.sleep(0.1)
    assert loop.is_running
    await loop.shutdown()

    assert resolve_guild.call_count >= 2


@pytest.mark.asyncio
async def test_record_with_naive_time_does_not_block_others(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "schedule.json")
    good = echo_job(RepeatType.NONE, T0)
    await store.insert(good)
    bad = ScheduledJob(id="bad", created_at=T0, execute_at=datetime.datetime(2024, 3, 1, 11), action=good.action)
    store._jobs = [bad, *store._jobs]
    dispatcher = completing_dispatcher()

    outcomes = await make_loop(store, dispatcher).tick(now=T0 + HOUR)

    assert [outcome.job_id for outcome in outcomes] == [good.id]
    assert good.id not in store
    assert "bad" in store


@pytest.mark.asyncio
async def test_failed_save_does_not_stop_remaining_jobs(tmp_path: Path, monkeypatch) -> None:
    store = JobStore(tmp_path / "schedule.json")
    first = echo_job(RepeatType.DAILY, T0)
    second = echo_job(RepeatType.DAILY, T0)
    await store.insert(first)
    await store.insert(second)

    real_write = job_store_module.write_atomic
    calls = []

    def flaky_write(path, payload):
        calls.append(path)
        if len(calls) == 1:
            raise OSError("disk full")
        real_write(path, payload)

    monkeypatch.setattr(job_store_module, "write_atomic", flaky_write)
    dispatcher = completing_dispatcher()

    outcomes = await make_loop(store, dispatcher).tick(now=T0)

    assert len(outcomes) == 2
    assert dispatcher.execute.await_count == 2
    assert store.get(first.id).execute_at == T0
    assert store.get(second.id).execute_at == T0 + datetime.timedelta(days=1)
