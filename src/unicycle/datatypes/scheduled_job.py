"""
Scheduled job data structures.

A :class:`ScheduledJob` pairs a closed set of action payloads with a repeat
policy. Jobs serialize to plain dicts so :mod:`unicycle.scheduler.job_store`
can keep the whole collection in a human-diffable JSON file.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Union


class RepeatType(Enum):
    """How a job is rescheduled after it runs."""

    NONE = "none"
    RELATIVE = "relative"
    DAILY = "daily"
    WEEKLY = "weekly"
    YEARLY = "yearly"

    def __str__(self) -> str:
        return self.value


# ==========================================
# Action payloads
# ==========================================

@dataclass(frozen=True, slots=True)
class RoleAdditionAction:
    """Give ``role_id`` to ``user_id``."""
    kind: ClassVar[str] = "role_addition"

    user_id: int
    role_id: int
    reason: str | None = None

    def describe(self) -> str:
        return f"Add <@&{self.role_id}> to <@{self.user_id}>"


@dataclass(frozen=True, slots=True)
class RoleRemovalAction:
    """Take ``role_id`` away from ``user_id``."""
    kind: ClassVar[str] = "role_removal"

    user_id: int
    role_id: int
    reason: str | None = None

    def describe(self) -> str:
        return f"Remove <@&{self.role_id}> from <@{self.user_id}>"


@dataclass(frozen=True, slots=True)
class UnbanAction:
    """Lift the ban on ``user_id``."""
    kind: ClassVar[str] = "unban"

    user_id: int

    def describe(self) -> str:
        return f"Unban <@{self.user_id}>"


@dataclass(frozen=True, slots=True)
class EchoAction:
    """Post ``content`` to a channel, or DM it when the target is a user."""
    kind: ClassVar[str] = "echo"

    target_id: int
    content: str

    def describe(self) -> str:
        return f"Send \"{self.content}\" to {self.target_id}"


@dataclass(frozen=True, slots=True)
class BannerRotationAction:
    """Rotate the guild banner according to the configured banner mode."""
    kind: ClassVar[str] = "banner_rotation"

    def describe(self) -> str:
        return "Rotate the server banner"


@dataclass(frozen=True, slots=True)
class UnknownAction:
    """An action type this build does not know, kept verbatim so it survives rewrites."""

    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return f"Unknown action '{self.kind}'"


ScheduledAction = Union[
    RoleAdditionAction,
    RoleRemovalAction,
    UnbanAction,
    EchoAction,
    BannerRotationAction,
    UnknownAction,
]


def action_to_dict(action: ScheduledAction) -> Dict[str, Any]:
    """Serialize an action payload to a JSON-ready dict tagged with ``type``."""
    match action:
        case RoleAdditionAction() | RoleRemovalAction():
            return {"type": action.kind, "user": action.user_id, "role": action.role_id, "reason": action.reason}
        case UnbanAction():
            return {"type": action.kind, "user": action.user_id}
        case EchoAction():
            return {"type": action.kind, "channel_or_user": action.target_id, "content": action.content}
        case BannerRotationAction():
            return {"type": action.kind}
        case UnknownAction():
            return {**action.payload, "type": action.kind}
    raise TypeError(f"Cannot serialize action of type {type(action).__name__}")


def action_from_dict(data: Dict[str, Any]) -> ScheduledAction:
    """Build an action payload from its serialized form.

    Unrecognized ``type`` tags load as :class:`UnknownAction` instead of failing,
    so one record written by a newer build cannot make the whole schedule unreadable.
    """
    kind = str(data.get("type", ""))
    if kind == RoleAdditionAction.kind:
        return RoleAdditionAction(int(data["user"]), int(data["role"]), data.get("reason"))
    if kind == RoleRemovalAction.kind:
        return RoleRemovalAction(int(data["user"]), int(data["role"]), data.get("reason"))
    if kind == UnbanAction.kind:
        return UnbanAction(int(data["user"]))
    if kind == EchoAction.kind:
        return EchoAction(int(data["channel_or_user"]), str(data.get("content", "")))
    if kind == BannerRotationAction.kind:
        return BannerRotationAction()
    return UnknownAction(kind, {k: v for k, v in data.items() if k != "type"})


# ==========================================
# Time helpers
# ==========================================

def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def add_years(moment: datetime.datetime, years: int) -> datetime.datetime:
    """Add calendar years, clamping 29 February to 28 February on non-leap years."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def _format_timestamp(moment: datetime.datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


def _parse_timestamp(value: str | None) -> datetime.datetime | None:
    if value is None:
        return None
    moment = datetime.datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment


# ==========================================
# Scheduled job
# ==========================================

@dataclass(slots=True)
class ScheduledJob:
    """A single persistent future action.

    Attributes:
        id: Unique identifier (UUID4 string).
        created_at: When the job was created.
        execute_at: Next time the job is due.
        action: What the job does when it runs.
        repeat_type: How the job is rescheduled after running.
        last_executed_at: Previous execution time, ``None`` until the first run.
    """
    id: str
    created_at: datetime.datetime
    execute_at: datetime.datetime
    action: ScheduledAction
    repeat_type: RepeatType = RepeatType.NONE
    last_executed_at: datetime.datetime | None = None

    @classmethod
    def create(
        cls,
        action: ScheduledAction,
        execute_at: datetime.datetime,
        repeat_type: RepeatType = RepeatType.NONE,
        *,
        created_at: datetime.datetime | None = None,
    ) -> "ScheduledJob":
        """Create a new job with a fresh id, created now unless told otherwise."""
        return cls(
            id=str(uuid.uuid4()),
            created_at=created_at or utcnow(),
            execute_at=execute_at,
            action=action,
            repeat_type=repeat_type,
        )

    @property
    def interval_anchor(self) -> datetime.datetime:
        """The time a relative repeat interval is measured from."""
        return self.last_executed_at or self.created_at

    def has_positive_interval(self) -> bool:
        """True unless this is a relative job whose next run is not after its anchor."""
        if self.repeat_type is not RepeatType.RELATIVE:
            return True
        return self.execute_at > self.interval_anchor

    def is_due(self, now: datetime.datetime) -> bool:
        return self.execute_at <= now

    def advance(self) -> bool:
        """Move the job to its next execution time.

        Returns ``False`` for non-repeating jobs, which should be deleted instead.
        """
        executed_at = self.execute_at
        match self.repeat_type:
            case RepeatType.NONE:
                return False
            case RepeatType.RELATIVE:
                next_execute_at = executed_at + (executed_at - self.interval_anchor)
            case RepeatType.DAILY:
                next_execute_at = executed_at + datetime.timedelta(days=1)
            case RepeatType.WEEKLY:
                next_execute_at = executed_at + datetime.timedelta(days=7)
            case RepeatType.YEARLY:
                next_execute_at = add_years(executed_at, 1)

        self.last_executed_at = executed_at
        self.execute_at = next_execute_at
        return True

    def to_discord_string(self) -> str:
        """One-line human readable summary used in log lines and error messages."""
        when = f"<t:{int(self.execute_at.timestamp())}:F>"
        if self.repeat_type is RepeatType.NONE:
            repeat = "once"
        elif self.repeat_type is RepeatType.RELATIVE:
            repeat = f"every {self.execute_at - self.interval_anchor}"
        else:
            repeat = str(self.repeat_type)
        return f"`{self.id}`: {self.action.describe()} at {when} ({repeat})"

    # --------------------------
    # Serialization
    # --------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": _format_timestamp(self.created_at),
            "last_executed_at": _format_timestamp(self.last_executed_at),
            "execute_at": _format_timestamp(self.execute_at),
            "repeat_type": self.repeat_type.value,
            "action": action_to_dict(self.action),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledJob":
        created_at = _parse_timestamp(data["created_at"])
        execute_at = _parse_timestamp(data["execute_at"])
        if created_at is None or execute_at is None:
            raise ValueError(f"Scheduled job {data.get('id')} is missing its timestamps")
        return cls(
            id=str(data["id"]),
            created_at=created_at,
            execute_at=execute_at,
            action=action_from_dict(data.get("action") or {}),
            repeat_type=RepeatType(data.get("repeat_type", RepeatType.NONE.value)),
            last_executed_at=_parse_timestamp(data.get("last_executed_at")),
        )
