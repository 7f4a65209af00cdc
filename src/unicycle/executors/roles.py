"""Executors for scheduled role additions and removals."""

from __future__ import annotations

import discord

from unicycle.datatypes.scheduled_job import RoleAdditionAction, RoleRemovalAction, ScheduledJob
from unicycle.executors.base import ExecutionOutcome
from unicycle.mod_logging.mod_log import ModLogDispatcher
from unicycle.scheduler.errors import StaleReferenceError
from unicycle.services.directory import GuildDirectory
from unicycle.util.logger import get_logger

logger = get_logger("role_executor")


def _reason_suffix(reason: str | None) -> str:
    return f" Reason: {reason}." if reason else ""


class RoleExecutor:
    """Give or take a role, then log it to the moderation channel."""

    def __init__(self, directory: GuildDirectory, mod_log: ModLogDispatcher) -> None:
        self.directory = directory
        self.mod_log = mod_log

    async def _resolve(
        self, guild: discord.Guild, action: RoleAdditionAction | RoleRemovalAction
    ) -> tuple[discord.Role, discord.Member]:
        role = self.directory.resolve_role(guild, action.role_id)
        if role is None:
            raise StaleReferenceError("role", action.role_id)
        member = await self.directory.resolve_member(guild, action.user_id)
        if member is None:
            raise StaleReferenceError("user", action.user_id)
        return role, member

    async def add(self, job: ScheduledJob, action: RoleAdditionAction, guild: discord.Guild) -> ExecutionOutcome:
        try:
            role, member = await self._resolve(guild, action)
        except StaleReferenceError as exc:
            return ExecutionOutcome.skipped(job.id, str(exc))

        logger.debug("Adding %s (%s) to %s (%s)", role.name, role.id, member.name, member.id)
        await self.directory.grant_role(member, role, action.reason)

        await (
            self.mod_log.create(guild)
            .set_content(f"Gave <@&{role.id}> to <@{member.id}> (`{member.id}`).")
            .set_file_content(f"Gave {role.name} ({role.id}) to {member.name} ({member.id}).{_reason_suffix(action.reason)}")
            .send()
        )
        return ExecutionOutcome.completed(job.id)

    async def remove(self, job: ScheduledJob, action: RoleRemovalAction, guild: discord.Guild) -> ExecutionOutcome:
        try:
            role, member = await self._resolve(guild, action)
        except StaleReferenceError as exc:
            return ExecutionOutcome.skipped(job.id, str(exc))

        logger.debug("Removing %s (%s) from %s (%s)", role.name, role.id, member.name, member.id)
        await self.directory.revoke_role(member, role, action.reason)

        await (
            self.mod_log.create(guild)
            .set_content(f"Removed <@&{role.id}> from <@{member.id}> (`{member.id}`)")
            .set_file_content(f"Removed {role.name} ({role.id}) from {member.name} ({member.id}).{_reason_suffix(action.reason)}")
            .send()
        )
        return ExecutionOutcome.completed(job.id)
