"""Executor for scheduled unbans."""

from __future__ import annotations

import discord

from unicycle.datatypes.scheduled_job import ScheduledJob, UnbanAction
from unicycle.executors.base import ExecutionOutcome
from unicycle.mod_logging.mod_log import ModLogDispatcher
from unicycle.services.directory import GuildDirectory
from unicycle.util.logger import get_logger

logger = get_logger("unban_executor")

UNBAN_EMBED_COLOR = 16737792


class UnbanExecutor:
    """Lift a ban if it is still in place and post a friendly note about it."""

    def __init__(self, directory: GuildDirectory, mod_log: ModLogDispatcher) -> None:
        self.directory = directory
        self.mod_log = mod_log

    async def execute(self, job: ScheduledJob, action: UnbanAction, guild: discord.Guild) -> ExecutionOutcome:
        if not await self.directory.is_banned(guild, action.user_id):
            return ExecutionOutcome.skipped(job.id, f"user {action.user_id} is not banned")

        user = await self.directory.fetch_user(action.user_id)
        label = f"{user.name} ({action.user_id})" if user is not None else f"({action.user_id})"

        logger.debug("Unbanning %s.", label)
        await self.directory.remove_ban(guild, action.user_id, reason="Scheduled unban.")

        embed = discord.Embed(
            title=f"Unbanned {label}",
            color=UNBAN_EMBED_COLOR,
            description=f"Gasp! Does this mean I can invite <@{action.user_id}> to our next traditional unicorn sleepover?",
        )
        await (
            self.mod_log.create(guild)
            .set_embed(embed)
            .set_file_content(f"Unbanned {label}")
            .send()
        )
        return ExecutionOutcome.completed(job.id)
