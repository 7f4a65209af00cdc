"""Construction of the scheduler services for a running bot."""

from __future__ import annotations

from dataclasses import dataclass

import discord

from unicycle.configuration.app_configuration import AppConfig
from unicycle.executors.banner import BannerExecutor
from unicycle.executors.dispatcher import JobDispatcher
from unicycle.executors.echo import EchoExecutor
from unicycle.executors.roles import RoleExecutor
from unicycle.executors.unban import UnbanExecutor
from unicycle.mod_logging.mod_log import BatchFlusher, BatchQueue, ModerationFileLog, ModLogDispatcher
from unicycle.scheduler.job_store import JobStore
from unicycle.scheduler.scheduler_loop import SchedulerLoop
from unicycle.services.booru import BooruClient
from unicycle.services.directory import GuildDirectory
from unicycle.services.general_storage import GeneralStorage
from unicycle.util.logger import get_logger

logger = get_logger("runtime")


@dataclass
class SchedulerRuntime:
    """Everything the scheduler cog needs, wired together."""
    config: AppConfig
    store: JobStore
    directory: GuildDirectory
    mod_log: ModLogDispatcher
    flusher: BatchFlusher
    scheduler: SchedulerLoop

    def start(self) -> None:
        self.scheduler.start()
        self.flusher.start()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        await self.flusher.shutdown()


def build_runtime(bot: discord.Bot, config: AppConfig) -> SchedulerRuntime:
    """Load persisted state and build the scheduler services for ``bot``."""
    store = JobStore(config.schedule_path)
    store.load()

    storage = GeneralStorage(config.general_storage_path).load()
    directory = GuildDirectory(bot)

    queue = BatchQueue()
    mod_log = ModLogDispatcher(config, ModerationFileLog(config.moderation_log_path), queue)
    flusher = BatchFlusher(queue, lambda: config.batch_send_rate)

    booru = BooruClient(
        config.booru_base_url,
        filter_id=config.booru_filter_id,
        timeout=config.booru_timeout,
        user_agent=config.http_user_agent,
    )
    dispatcher = JobDispatcher(
        roles=RoleExecutor(directory, mod_log),
        unban=UnbanExecutor(directory, mod_log),
        echo=EchoExecutor(directory),
        banner=BannerExecutor(config, directory, booru, storage, mod_log),
    )
    scheduler = SchedulerLoop(
        store,
        dispatcher,
        resolve_guild=lambda: directory.resolve_guild(config.default_guild_id),
        get_interval=lambda: config.scheduler_interval,
    )

    logger.info("Scheduler runtime ready with %d scheduled jobs", len(store))
    return SchedulerRuntime(config, store, directory, mod_log, flusher, scheduler)
