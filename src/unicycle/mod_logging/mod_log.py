"""
Moderation log entries and their delivery.

A :class:`ModLogBuilder` collects the plain text, embed and file text for one
entry and hands it to :class:`ModLogDispatcher`. The dispatcher always writes
the file text to the durable moderation log first. It then either sends the
entry to the moderation channel right away or queues it on the injected
:class:`BatchQueue` for :class:`BatchFlusher` to send later.
"""

from __future__ import annotations

import asyncio
import datetime
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import discord

from unicycle.configuration.app_configuration import AppConfig
from unicycle.util.logger import get_logger

logger = get_logger("mod_log")


@dataclass(slots=True)
class ModLogEntry:
    """One moderation notification.

    Attributes:
        channel: Moderation channel the entry is delivered to, ``None`` if it could not be resolved.
        content: Plain text body, may contain mentions.
        embed: Rich body.
        file_content: Text for the durable moderation log, without mentions.
    """
    channel: discord.abc.Messageable | None
    content: str | None = None
    embed: discord.Embed | None = None
    file_content: str | None = None


class BatchQueue:
    """Ordered pending entries waiting for the next batch flush."""

    def __init__(self) -> None:
        self._entries: List[ModLogEntry] = []

    def add(self, entry: ModLogEntry) -> None:
        self._entries.append(entry)

    def drain(self) -> List[ModLogEntry]:
        """Return every pending entry and leave the queue empty."""
        entries, self._entries = self._entries, []
        return entries

    def __len__(self) -> int:
        return len(self._entries)


# ==========================================
# Durable moderation log file
# ==========================================

_HEADER_PATTERN = re.compile(r"^----------= (?P<date>.+) =----------$")
_HEADER_DATE_FORMAT = "%A, %d %B %Y"


class ModerationFileLog:
    """Append-only text log with a dated header before each new day of activity."""

    def __init__(self, path: Path, clock: Callable[[], datetime.datetime] | None = None) -> None:
        self.path = path
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))
        self._last_header: str | None = None
        self._scanned = False

    def _scan_last_header(self) -> None:
        self._scanned = True
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                match = _HEADER_PATTERN.match(line.rstrip("\n"))
                if match:
                    self._last_header = match.group("date")

    @staticmethod
    def format_lines(text: str, moment: datetime.datetime) -> str:
        stamp = moment.strftime("%Y-%m-%d %H:%M:%S UTC")
        return "".join(f"[{stamp}] {line}\n" for line in text.splitlines() or [""])

    def append(self, text: str) -> None:
        """Append ``text`` as one or more timestamped lines."""
        if not self._scanned:
            self._scan_last_header()

        now = self._clock()
        header = now.strftime(_HEADER_DATE_FORMAT)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            if header != self._last_header:
                handle.write(f"----------= {header} =----------\n")
                self._last_header = header
            handle.write(self.format_lines(text, now))


# ==========================================
# Dispatch
# ==========================================

class ModLogBuilder:
    """Fluent builder for a single moderation log entry."""

    def __init__(self, dispatcher: "ModLogDispatcher", channel: discord.abc.Messageable | None) -> None:
        self._dispatcher = dispatcher
        self.entry = ModLogEntry(channel=channel)

    def set_content(self, content: str) -> "ModLogBuilder":
        self.entry.content = content
        return self

    def set_embed(self, embed: discord.Embed) -> "ModLogBuilder":
        self.entry.embed = embed
        return self

    def set_file_content(self, content: str) -> "ModLogBuilder":
        self.entry.file_content = content
        return self

    async def send(self) -> None:
        await self._dispatcher.dispatch(self.entry)


class ModLogDispatcher:
    """Route moderation log entries to the file log and the moderation channel."""

    def __init__(self, config: AppConfig, file_log: ModerationFileLog, queue: BatchQueue) -> None:
        self.config = config
        self.file_log = file_log
        self.queue = queue

    def create(self, guild: discord.Guild) -> ModLogBuilder:
        """Start an entry addressed to ``guild``'s moderation channel."""
        channel = guild.get_channel(self.config.mod_channel_id)
        if channel is None:
            logger.warning("[MOD LOG] Moderation channel %s not found in guild %s", self.config.mod_channel_id, guild.id)
        return ModLogBuilder(self, channel)

    async def dispatch(self, entry: ModLogEntry) -> None:
        if entry.content is None and entry.embed is None:
            raise ValueError("A moderation log cannot have no content")

        if entry.file_content is not None:
            await asyncio.to_thread(self.file_log.append, entry.file_content)

        if entry.channel is None:
            logger.warning("[MOD LOG] Dropping channel delivery, no moderation channel: %s", entry.content)
            return

        if self.config.batch_send_logs:
            self.queue.add(entry)
            return

        embeds = [entry.embed] if entry.embed is not None else None
        await entry.channel.send(content=entry.content, embeds=embeds)


class BatchFlusher:
    """Background task that sends every queued entry as one message per period."""

    def __init__(self, queue: BatchQueue, get_interval: Callable[[], float]) -> None:
        self.queue = queue
        self._get_interval = get_interval
        self._task: asyncio.Task | None = None

    async def flush(self) -> int:
        """Send all pending entries in a single message and return how many were sent."""
        entries = self.queue.drain()
        if not entries:
            return 0

        channel = entries[-1].channel
        contents = [entry.content for entry in entries if entry.content is not None]
        embeds = [entry.embed for entry in entries if entry.embed is not None]

        await channel.send(content="\n".join(contents) or None, embeds=embeds or None)
        logger.debug("[MOD LOG] Flushed %d batched log entries", len(entries))
        return len(entries)

    async def _run_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._get_interval())
                try:
                    await self.flush()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[MOD LOG] Failed to flush batched logs: %s", exc)
        except asyncio.CancelledError:
            logger.info("[MOD LOG] Batch flusher cancelled")
            raise

    def start(self) -> None:
        """Start the flush task if not already running."""
        if self._task and not self._task.done():
            logger.warning("[MOD LOG] Batch flusher already running")
            return
        self._task = asyncio.create_task(self._run_loop(), name="unicycle-batch-flusher")

    async def shutdown(self) -> None:
        """Cancel the flush task. Queued entries are flushed one last time."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        try:
            await self.flush()
        except Exception as exc:
            logger.error("[MOD LOG] Failed to flush batched logs on shutdown: %s", exc)
