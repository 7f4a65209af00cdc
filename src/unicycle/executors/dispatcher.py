"""Route each scheduled job to the executor for its action type."""

from __future__ import annotations

import discord

from unicycle.datatypes.scheduled_job import (
    BannerRotationAction,
    EchoAction,
    RoleAdditionAction,
    RoleRemovalAction,
    ScheduledJob,
    UnbanAction,
    UnknownAction,
)
from unicycle.executors.banner import BannerExecutor
from unicycle.executors.base import ExecutionOutcome
from unicycle.executors.echo import EchoExecutor
from unicycle.executors.roles import RoleExecutor
from unicycle.executors.unban import UnbanExecutor
from unicycle.scheduler.errors import UnsupportedActionError


class JobDispatcher:
    """Holds one executor per action type and picks the right one for a job."""

    def __init__(
        self,
        roles: RoleExecutor,
        unban: UnbanExecutor,
        echo: EchoExecutor,
        banner: BannerExecutor,
    ) -> None:
        self.roles = roles
        self.unban = unban
        self.echo = echo
        self.banner = banner

    async def execute(self, job: ScheduledJob, guild: discord.Guild) -> ExecutionOutcome:
        """Run ``job`` against ``guild``.

        Raises:
            UnsupportedActionError: If no executor handles the job's action.
        """
        action = job.action
        match action:
            case RoleAdditionAction():
                return await self.roles.add(job, action, guild)
            case RoleRemovalAction():
                return await self.roles.remove(job, action, guild)
            case UnbanAction():
                return await self.unban.execute(job, action, guild)
            case EchoAction():
                return await self.echo.execute(job, action, guild)
            case BannerRotationAction():
                return await self.banner.execute(job, action, guild)
            case UnknownAction(kind=kind):
                raise UnsupportedActionError(kind)
            case _:
                raise UnsupportedActionError(type(action).__name__)
