"""Team role-based access control.

Every team-scoped query and mutation goes through one of these checks before
it touches the store. Checks raise; they never return a falsy "denied".
"""

import structlog

from taskboard.errors import Unauthenticated, Unauthorized
from taskboard.models import Task, TeamMember, TeamRole, User
from taskboard.security import Identity
from taskboard.store import EntityStore

logger = structlog.get_logger()


def require_authenticated(caller: Identity | None) -> Identity:
    """Return the caller identity, or raise if the request is anonymous."""
    if caller is None:
        raise Unauthenticated()
    return caller


def require_existing_user(store: EntityStore, caller: Identity | None) -> User:
    """Return the caller's user record.

    Access tokens stay valid until they expire, so a token can outlive the
    account it names. Callers hold ``store.atomic()``.
    """
    identity = require_authenticated(caller)
    user = store.get(User, identity.user_id)
    if user is None:
        logger.info("access_denied_user_deleted", user_id=identity.user_id)
        raise Unauthenticated()
    return user


def require_team_member(
    store: EntityStore,
    caller: Identity | None,
    team_id: str,
) -> TeamMember:
    """Return the caller's membership in ``team_id``."""
    identity = require_authenticated(caller)
    member = store.find_member(identity.user_id, team_id)
    if member is None:
        logger.info("access_denied_not_member", user_id=identity.user_id, team_id=team_id)
        raise Unauthorized("You are not a member of this team.")
    return member


def require_role(
    store: EntityStore,
    caller: Identity | None,
    team_id: str,
    *allowed_roles: TeamRole,
) -> TeamMember:
    """Return the caller's membership if it holds one of ``allowed_roles``."""
    member = require_team_member(store, caller, team_id)
    if member.role not in allowed_roles:
        logger.info(
            "access_denied_role",
            user_id=member.user_id,
            team_id=team_id,
            role=member.role.value,
        )
        roles = ", ".join(role.value for role in allowed_roles)
        raise Unauthorized(f"This action requires one of the following roles: {roles}.")
    return member


def require_task_owner_or_admin(
    store: EntityStore,
    caller: Identity | None,
    task: Task,
) -> TeamMember:
    """Admins of the task's team, or the task's current assignee, may modify it."""
    member = require_team_member(store, caller, task.team_id)
    if member.role == TeamRole.ADMIN:
        return member
    if task.assigned_user_id != member.user_id:
        raise Unauthorized("You can only modify tasks assigned to you.")
    return member
