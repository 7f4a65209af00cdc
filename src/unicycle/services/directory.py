"""Directory and messaging adapter over py-cord.

Executors only talk to Discord through :class:`GuildDirectory`. Lookups return
``None`` for entities that no longer exist, and any ``discord.HTTPException``
raised by a mutation is re-raised as :class:`ExternalServiceError` so the
scheduler can log it against the job that triggered it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

import discord

from unicycle.scheduler.errors import ExternalServiceError
from unicycle.util.logger import get_logger

logger = get_logger("guild_directory")


@asynccontextmanager
async def _discord_call(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except discord.HTTPException as exc:
        raise ExternalServiceError("discord", f"{operation}: {exc.text or exc}", status=exc.status) from exc


class GuildDirectory:
    """Resolve guild entities and perform the mutations scheduled jobs need."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_guild(self, guild_id: int) -> discord.Guild | None:
        return self.bot.get_guild(guild_id)

    def resolve_role(self, guild: discord.Guild, role_id: int) -> discord.Role | None:
        return guild.get_role(role_id)

    async def resolve_member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise ExternalServiceError("discord", f"fetch member {user_id}: {exc.text or exc}", status=exc.status) from exc

    def resolve_text_channel(self, guild: discord.Guild, channel_id: int) -> discord.TextChannel | discord.Thread | None:
        channel = guild.get_channel_or_thread(channel_id)
        if isinstance(channel, (discord.TextChannel, discord.Thread)):
            return channel
        return None

    async def fetch_user(self, user_id: int) -> discord.User | None:
        user = self.bot.get_user(user_id)
        if user is not None:
            return user
        try:
            return await self.bot.fetch_user(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise ExternalServiceError("discord", f"fetch user {user_id}: {exc.text or exc}", status=exc.status) from exc

    async def is_banned(self, guild: discord.Guild, user_id: int) -> bool:
        try:
            await guild.fetch_ban(discord.Object(id=user_id))
        except discord.NotFound:
            return False
        except discord.HTTPException as exc:
            raise ExternalServiceError("discord", f"fetch ban {user_id}: {exc.text or exc}", status=exc.status) from exc
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def remove_ban(self, guild: discord.Guild, user_id: int, reason: str | None = None) -> None:
        async with _discord_call(f"unban {user_id}"):
            await guild.unban(discord.Object(id=user_id), reason=reason)

    async def grant_role(self, member: discord.Member, role: discord.Role, reason: str | None = None) -> None:
        async with _discord_call(f"add role {role.id} to {member.id}"):
            await member.add_roles(role, reason=reason)

    async def revoke_role(self, member: discord.Member, role: discord.Role, reason: str | None = None) -> None:
        async with _discord_call(f"remove role {role.id} from {member.id}"):
            await member.remove_roles(role, reason=reason)

    async def send_channel_message(
        self,
        channel: discord.abc.Messageable,
        content: str | None = None,
        *,
        embeds: Sequence[discord.Embed] = (),
    ) -> None:
        async with _discord_call("send channel message"):
            await channel.send(content=content, embeds=list(embeds) or None)

    async def send_direct_message(self, user_id: int, content: str, *, view: discord.ui.View | None = None) -> None:
        user = await self.fetch_user(user_id)
        if user is None:
            raise ExternalServiceError("discord", f"user {user_id} could not be fetched for a direct message")
        async with _discord_call(f"direct message {user_id}"):
            await user.send(content=content, view=view)

    async def set_guild_banner(self, guild: discord.Guild, image: bytes) -> None:
        async with _discord_call("set guild banner"):
            await guild.edit(banner=image)
        logger.debug("[DIRECTORY] Updated banner for guild %s", guild.id)
