"""In-memory entity records.

Records reference each other by id only. The store owns every instance; code
outside ``taskboard.store`` mutates a record only while holding
``EntityStore.atomic()``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TeamRole(str, Enum):
    """Per-team permission level."""

    ADMIN = "ADMIN"
    USER = "USER"


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


@dataclass
class User:
    """Registered account."""

    email: str
    password_hash: str = field(repr=False)
    name: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: str = ""


@dataclass
class Team:
    name: str
    created_at: datetime = field(default_factory=utcnow)
    id: str = ""


@dataclass
class TeamMember:
    """Membership of a user in a team, with role."""

    user_id: str
    team_id: str
    role: TeamRole = TeamRole.USER
    joined_at: datetime = field(default_factory=utcnow)
    id: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == TeamRole.ADMIN


@dataclass
class Task:
    """Unit of work belonging to exactly one team."""

    team_id: str
    title: str
    description: str | None = None
    assigned_user_id: str | None = None
    status: TaskStatus = TaskStatus.UNASSIGNED
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: str = ""


@dataclass
class AssignmentHistory:
    """Append-only audit row for one change of a task's assignee.

    ``from_user_id``/``to_user_id`` are None when the task was (or becomes)
    unassigned.
    """

    task_id: str
    changed_by_user_id: str
    from_user_id: str | None = None
    to_user_id: str | None = None
    changed_at: datetime = field(default_factory=utcnow)
    id: str = ""


ENTITY_KINDS: tuple[type, ...] = (User, Team, TeamMember, Task, AssignmentHistory)
