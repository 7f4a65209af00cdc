"""
Tests for moderation log delivery: immediate sends, batching and the durable log file.
"""

import asyncio
import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import T0
from unicycle.mod_logging.mod_log import (
    BatchFlusher,
    BatchQueue,
    ModerationFileLog,
    ModLogDispatcher,
    ModLogEntry,
)


class FakeClock:
    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now


@pytest.fixture()
def batched(config_factory, tmp_path: Path):
    queue = BatchQueue()
    config = config_factory({"mod_logging": {"batch_send_logs": True, "batch_send_rate_seconds": 0.01}})
    return ModLogDispatcher(config, ModerationFileLog(tmp_path / "moderation.log"), queue), queue


@pytest.mark.asyncio
async def test_immediate_mode_sends_right_away(mod_log, guild, mod_channel) -> None:
    await mod_log.create(guild).set_content("Gave a role").send()

    mod_channel.send.assert_awaited_once_with(content="Gave a role", embeds=None)
    assert len(mod_log.queue) == 0


@pytest.mark.asyncio
async def test_entry_without_body_is_rejected(mod_log, guild, mod_channel) -> None:
    with pytest.raises(ValueError):
        await mod_log.create(guild).set_file_content("file only").send()

    mod_channel.send.assert_not_called()


@pytest.mark.asyncio
async def test_batched_entries_wait_for_flush(batched, guild, mod_channel) -> None:
    mod_log, queue = batched
    embed = discord.Embed(title="Unbanned")

    await mod_log.create(guild).set_content("first").send()
    await mod_log.create(guild).set_embed(embed).send()
    await mod_log.create(guild).set_content("third").send()

    assert len(queue) == 3
    mod_channel.send.assert_not_called()

    flushed = await BatchFlusher(queue, lambda: 10.0).flush()

    assert flushed == 3
    assert len(queue) == 0
    mod_channel.send.assert_awaited_once_with(content="first\nthird", embeds=[embed])


@pytest.mark.asyncio
async def test_flush_of_empty_queue_sends_nothing() -> None:
    assert await BatchFlusher(BatchQueue(), lambda: 10.0).flush() == 0


@pytest.mark.asyncio
async def test_flusher_task_sends_periodically_and_flushes_on_shutdown(batched, guild, mod_channel) -> None:
    mod_log, queue = batched
    flusher = BatchFlusher(queue, lambda: 0.01)
    flusher.start()

    await mod_log.create(guild).set_content("periodic").send()
    for _ in range(50):
        if mod_channel.send.await_count:
            break
        await asyncio.sleep(0.01)
    mod_channel.send.assert_awaited_with(content="periodic", embeds=None)

    queue.add(ModLogEntry(channel=mod_channel, content="late"))
    await flusher.shutdown()

    mod_channel.send.assert_awaited_with(content="late", embeds=None)
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_flusher_keeps_running_after_send_error(mod_channel) -> None:
    queue = BatchQueue()
    mod_channel.send = AsyncMock(side_effect=[RuntimeError("boom"), None])
    flusher = BatchFlusher(queue, lambda: 0.01)
    flusher.start()

    queue.add(ModLogEntry(channel=mod_channel, content="one"))
    for _ in range(50):
        if mod_channel.send.await_count >= 1:
            break
        await asyncio.sleep(0.01)
    queue.add(ModLogEntry(channel=mod_channel, content="two"))
    for _ in range(50):
        if mod_channel.send.await_count >= 2:
            break
        await asyncio.sleep(0.01)
    await flusher.shutdown()

    assert mod_channel.send.await_count == 2


@pytest.mark.asyncio
async def test_missing_mod_channel_still_writes_file(config_factory, tmp_path: Path) -> None:
    guild = MagicMock(id=1)
    guild.get_channel.return_value = None
    mod_log = ModLogDispatcher(config_factory(), ModerationFileLog(tmp_path / "moderation.log"), BatchQueue())

    await mod_log.create(guild).set_content("<@1> did a thing").set_file_content("someone did a thing").send()

    assert "someone did a thing" in (tmp_path / "moderation.log").read_text(encoding="utf-8")


def test_file_log_writes_one_header_per_day(tmp_path: Path) -> None:
    path = tmp_path / "moderation.log"
    clock = FakeClock(T0)
    log = ModerationFileLog(path, clock=clock)

    log.append("first")
    clock.now = T0 + datetime.timedelta(hours=2)
    log.append("second\nwith two lines")
    clock.now = T0 + datetime.timedelta(days=1)
    log.append("next day")

    assert path.read_text(encoding="utf-8").splitlines() == [
        "----------= Friday, 01 March 2024 =----------",
        "[2024-03-01 12:00:00 UTC] first",
        "[2024-03-01 14:00:00 UTC] second",
        "[2024-03-01 14:00:00 UTC] with two lines",
        "----------= Saturday, 02 March 2024 =----------",
        "[2024-03-02 12:00:00 UTC] next day",
    ]


def test_file_log_resumes_existing_day(tmp_path: Path) -> None:
    path = tmp_path / "moderation.log"
    ModerationFileLog(path, clock=FakeClock(T0)).append("before restart")

    ModerationFileLog(path, clock=FakeClock(T0 + datetime.timedelta(minutes=5))).append("after restart")

    assert path.read_text(encoding="utf-8").count("----------=") == 1
