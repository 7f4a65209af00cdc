"""Executor for scheduled echo messages."""

from __future__ import annotations

import discord

from unicycle.datatypes.scheduled_job import EchoAction, RepeatType, ScheduledJob
from unicycle.executors.base import ExecutionOutcome
from unicycle.services.directory import GuildDirectory
from unicycle.ui.unsubscribe import build_unsubscribe_view
from unicycle.util.logger import get_logger

logger = get_logger("echo_executor")


class EchoExecutor:
    """Post a message to a channel, or DM it with an unsubscribe button for repeating jobs."""

    def __init__(self, directory: GuildDirectory) -> None:
        self.directory = directory

    async def execute(self, job: ScheduledJob, action: EchoAction, guild: discord.Guild) -> ExecutionOutcome:
        if action.content == "":
            return ExecutionOutcome.skipped(job.id, "echo content is empty")

        channel = self.directory.resolve_text_channel(guild, action.target_id)
        if channel is not None:
            await self.directory.send_channel_message(channel, action.content)
            return ExecutionOutcome.completed(job.id, f"posted in channel {action.target_id}")

        view = build_unsubscribe_view(job.id) if job.repeat_type is not RepeatType.NONE else None
        await self.directory.send_direct_message(action.target_id, action.content, view=view)
        logger.debug("Sent echo job %s to user %s as a direct message", job.id, action.target_id)
        return ExecutionOutcome.completed(job.id, f"sent direct message to {action.target_id}")
