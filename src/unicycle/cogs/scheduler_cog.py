"""Cog that ties the scheduler runtime to the bot lifecycle.

- ``on_ready`` arms the scheduler loop and the batch log flusher (once).
- ``on_interaction`` handles clicks on echo unsubscribe buttons.
"""

from __future__ import annotations

import asyncio

import discord
from discord.ext import commands

from unicycle.runtime import SchedulerRuntime
from unicycle.ui.unsubscribe import handle_unsubscribe_interaction
from unicycle.util.logger import get_logger

logger = get_logger("scheduler_cog")


class SchedulerCog(commands.Cog):
    """Runs scheduled jobs for the default guild."""

    def __init__(self, bot: discord.Bot, runtime: SchedulerRuntime) -> None:
        self.bot = bot
        self.runtime = runtime
        self._shutdown_task: asyncio.Task | None = None

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self.runtime.scheduler.is_running:
            return
        self.runtime.start()
        logger.info("[SCHEDULER_COG] Ready with %d scheduled jobs", len(self.runtime.store))

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        try:
            await handle_unsubscribe_interaction(interaction, self.runtime.store)
        except discord.HTTPException as exc:
            logger.warning("[SCHEDULER_COG] Could not answer unsubscribe interaction: %s", exc)

    def cog_unload(self) -> None:
        self._shutdown_task = asyncio.create_task(self.runtime.shutdown(), name="unicycle-runtime-shutdown")
        self._shutdown_task.add_done_callback(self._log_shutdown_result)

    @staticmethod
    def _log_shutdown_result(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("[SCHEDULER_COG] Runtime shutdown was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[SCHEDULER_COG] Runtime shutdown failed: %s", exc, exc_info=exc)
            return
        logger.info("[SCHEDULER_COG] Stopped")


def setup(bot: discord.Bot, runtime: SchedulerRuntime) -> None:
    bot.add_cog(SchedulerCog(bot, runtime))
