"""
Banner rotation executor.

Three modes, picked by ``banner.mode`` in the app config:

- ``none``: do nothing.
- ``custom_rotation``: pick a random URL from ``banner.images`` and use it.
- ``booru_featured``: follow the booru's featured image, only touching the
  banner when the featured image changes.

Every failure is reported to the moderation channel with a hint on what to do
about it, and leaves the current banner and the featured image cache alone.
"""

from __future__ import annotations

import random
from urllib.parse import urlsplit

import discord

from unicycle.configuration.app_configuration import AppConfig, BannerMode
from unicycle.datatypes.scheduled_job import BannerRotationAction, ScheduledJob
from unicycle.executors.base import ExecutionOutcome
from unicycle.mod_logging.mod_log import ModLogDispatcher
from unicycle.scheduler.errors import ExternalServiceError, ExternalServiceTimeoutError
from unicycle.services.booru import BooruClient, FeaturedImage
from unicycle.services.directory import GuildDirectory
from unicycle.services.general_storage import GeneralStorage
from unicycle.util.logger import get_logger

logger = get_logger("banner_executor")

DISABLE_HINT = "If so please set `banner.mode` to `none` in the app config to avoid unnecessarily pinging it."

IMAGE_FEED_SERVICES = ("http", "booru")


def _is_feed_status_error(exc: Exception) -> bool:
    """True when the image host answered with an HTTP error status, as opposed to Discord rejecting the banner."""
    return isinstance(exc, ExternalServiceError) and exc.service in IMAGE_FEED_SERVICES and exc.status is not None


class BannerExecutor:
    """Change the guild banner according to the configured banner mode."""

    def __init__(
        self,
        config: AppConfig,
        directory: GuildDirectory,
        booru: BooruClient,
        storage: GeneralStorage,
        mod_log: ModLogDispatcher,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.directory = directory
        self.booru = booru
        self.storage = storage
        self.mod_log = mod_log
        self.rng = rng or random.Random()

    @property
    def booru_name(self) -> str:
        return urlsplit(self.booru.base_url).hostname or self.booru.base_url

    async def _report(self, guild: discord.Guild, content: str, file_content: str | None = None) -> None:
        await self.mod_log.create(guild).set_content(content).set_file_content(file_content or content).send()

    async def execute(self, job: ScheduledJob, action: BannerRotationAction, guild: discord.Guild) -> ExecutionOutcome:
        mode = self.config.banner_mode
        if mode is BannerMode.NONE:
            logger.info("Banner rotation early returning because banner mode is none.")
            return ExecutionOutcome.skipped(job.id, "banner mode is none")

        if mode is BannerMode.CUSTOM_ROTATION:
            return await self._rotate_custom(job, guild)
        return await self._rotate_featured(job, guild)

    # ------------------------------------------------------------------
    # Custom rotation
    # ------------------------------------------------------------------

    async def _rotate_custom(self, job: ScheduledJob, guild: discord.Guild) -> ExecutionOutcome:
        images = self.config.banner_images
        if not images:
            logger.info("Banner rotation early returning because banner mode is custom_rotation but no images are configured.")
            return ExecutionOutcome.skipped(job.id, "no banner images configured")

        url = self.rng.choice(images)
        try:
            image = await self.booru.download(url)
            await self.directory.set_guild_banner(guild, image)
        except ExternalServiceTimeoutError as exc:
            await self._report(
                guild,
                f"Tried to change banner to <{url}> but the host server didn't respond fast enough, is it down? {DISABLE_HINT}",
                f"Tried to change banner to {url} but the host server didn't respond fast enough, is it down? {DISABLE_HINT}",
            )
            logger.warning("Encountered HTTP timeout when trying to change banner: %s", exc)
            return ExecutionOutcome.failed(job.id, exc)
        except Exception as exc:
            if _is_feed_status_error(exc):
                message = (
                    f"Tried to change banner and received a {exc.status} status code when attempting to ask "
                    f"the host server for the image. Doing nothing. Check that <{url}> still exists, "
                    f"or remove it from `banner.images`."
                )
            else:
                message = (
                    f"Tried to change banner to <{url}> and received a general error. Doing nothing.\n"
                    "Likely causes:\n"
                    "  - The image is too big for Discord.\n"
                    "  - This server cannot have a banner.\n"
                    "  - The host server sent something that isn't an image."
                )
            await self._report(guild, message, message.replace(f"<{url}>", url))
            logger.warning("Encountered error when trying to change banner: %s", exc)
            return ExecutionOutcome.failed(job.id, exc)

        await self._report(
            guild,
            f"Changed banner to <{url}> for banner rotation.",
            f"Changed banner to {url} for banner rotation.",
        )
        return ExecutionOutcome.completed(job.id, url)

    # ------------------------------------------------------------------
    # Featured image
    # ------------------------------------------------------------------

    async def _rotate_featured(self, job: ScheduledJob, guild: discord.Guild) -> ExecutionOutcome:
        booru = self.booru_name
        try:
            image = await self.booru.get_featured_image()

            cached = self.storage.current_featured_image
            if cached is not None and cached.id == image.id:
                logger.debug("Featured image is still %s. Nothing to do but update non-ID properties in the cache.", image.id)
                self.storage.current_featured_image = image
                await self.storage.save()
                return ExecutionOutcome.skipped(job.id, f"featured image {image.id} unchanged")

            page = self.booru.image_page_url(image.id)
            if not image.is_ready or image.thumbnail_url is None:
                await self._report(
                    guild,
                    f"Tried to change banner to <{page}> but that image hasn't fully been generated yet. "
                    f"Doing nothing and trying again in {self.config.banner_interval} minutes.",
                    f"Tried to change banner to {page} but that image hasn't fully been generated yet. "
                    f"Doing nothing and trying again in {self.config.banner_interval} minutes.",
                )
                return ExecutionOutcome.skipped(job.id, f"featured image {image.id} not ready")

            if image.spoilered:
                await self._report(
                    guild,
                    f"Tried to change banner to <{page}> but that image is blocked by my filter! Doing nothing.",
                    f"Tried to change banner to {page} but that image is blocked by my filter! Doing nothing.",
                )
                return ExecutionOutcome.skipped(job.id, f"featured image {image.id} is filtered")

            thumbnail = await self.booru.download(image.thumbnail_url)
            await self.directory.set_guild_banner(guild, thumbnail)
            await self._remember(image)

            await self._report(
                guild,
                f"Changed banner to <{page}> for {booru} featured image.",
                f"Changed banner to {page} for {booru} featured image.",
            )
            return ExecutionOutcome.completed(job.id, page)
        except ExternalServiceTimeoutError as exc:
            await self._report(guild, f"Tried to change banner but {booru} didn't respond fast enough, is it down? {DISABLE_HINT}")
            logger.warning("Encountered HTTP timeout when trying to change banner: %s", exc)
            return ExecutionOutcome.failed(job.id, exc)
        except Exception as exc:
            if _is_feed_status_error(exc):
                message = (
                    f"Tried to change banner and received a {exc.status} status code when attempting to ask {booru} "
                    "for the featured image. Doing nothing.\n"
                    "Likely causes:\n"
                    f"  - I sent a badly formatted request to {booru}.\n"
                    f"  - {booru} thinks I sent a badly formatted request when I didn't.\n"
                    f"  - {booru} is down and its proxy is giving me an error page."
                )
            else:
                message = (
                    f"Tried to change banner and received a general error when attempting to ask {booru} "
                    "for the featured image. Doing nothing.\n"
                    "Likely causes:\n"
                    "  - The image is too big for Discord.\n"
                    "  - This server cannot have a banner.\n"
                    "  - The banner rotation job is in an unexpected state."
                )
            await self._report(guild, message)
            logger.warning("Encountered error when trying to change banner: %s", exc)
            return ExecutionOutcome.failed(job.id, exc)

    async def _remember(self, image: FeaturedImage) -> None:
        self.storage.current_featured_image = image
        await self.storage.save()
