"""
unicycle
========

A Discord bot process that runs persistent scheduled jobs (role changes,
unbans, echo messages and banner rotation) for one guild and reports what it
did to a moderation channel and an append-only moderation log.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. UNICYCLE_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("UNICYCLE_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from unicycle.cogs import scheduler_cog
from unicycle.configuration.app_configuration import CONFIG_PATH, AppConfig
from unicycle.runtime import SchedulerRuntime, build_runtime
from unicycle.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents needed to resolve members, roles and bans in the default guild."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def create_bot(config: AppConfig) -> tuple[discord.Bot, SchedulerRuntime]:
    """Instantiate the Discord bot, build the scheduler runtime and register its cog."""
    bot = discord.Bot(intents=build_intents())
    runtime = build_runtime(bot, config)
    scheduler_cog.setup(bot, runtime)
    logger.info("All cogs loaded successfully.")
    return bot, runtime


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot, runtime: SchedulerRuntime) -> None:
    """Stop background tasks, then close the Discord connection."""
    try:
        await runtime.shutdown()
    except Exception as exc:
        logger.exception("Error during scheduler shutdown: %s", exc)

    if not bot.is_closed():
        await bot.close()

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the bot and run it until it disconnects, returning an exit code."""
    token = load_environment()
    config = AppConfig(BASE_DIR / CONFIG_PATH)

    try:
        bot, runtime = create_bot(config)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        return 1

    exit_code = 0
    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    os.chdir(BASE_DIR)
    sys.excepthook = handle_exception
    logger.info("Starting unicycle…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
