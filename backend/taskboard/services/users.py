"""User profile queries and self-service account changes."""

import structlog

from taskboard.errors import EmailAlreadyExists, NotFound, Unauthorized
from taskboard.models import Team, TeamMember, User
from taskboard.security import Identity
from taskboard.services.access_control import require_authenticated
from taskboard.services.tasks import apply_assignment
from taskboard.services.teams import count_admins
from taskboard.store import EntityStore

logger = structlog.get_logger()


class UserService:
    """Service for reading and managing user accounts."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _get_user(self, user_id: str) -> User:
        user = self.store.get(User, user_id)
        if user is None:
            raise NotFound("User")
        return user

    def _require_self(self, caller: Identity | None, user_id: str) -> Identity:
        identity = require_authenticated(caller)
        if identity.user_id != user_id:
            raise Unauthorized("You can only modify your own account.")
        return identity

    def list_users(self, caller: Identity | None) -> list[User]:
        require_authenticated(caller)
        return self.store.all(User)

    def get_user(self, caller: Identity | None, user_id: str) -> User:
        require_authenticated(caller)
        return self._get_user(user_id)

    def update_user(
        self,
        caller: Identity | None,
        user_id: str,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        require_authenticated(caller)
        with self.store.atomic():
            user = self._get_user(user_id)
            self._require_self(caller, user_id)

            if email is not None and email != user.email:
                if self.store.find_user_by_email(email) is not None:
                    raise EmailAlreadyExists()
                user.email = email
            if name is not None:
                user.name = name

        logger.info("user_updated", user_id=user_id)
        return user

    def delete_user(self, caller: Identity | None, user_id: str) -> None:
        """Delete the caller's own account.

        Refused while the user is the only ADMIN of any team. Otherwise the
        user's tasks are unassigned (one history row each), their memberships
        removed and the user deleted, all in one step. History rows keep the
        user id as an audit reference.
        """
        require_authenticated(caller)
        with self.store.atomic():
            self._get_user(user_id)
            self._require_self(caller, user_id)

            memberships = self.store.memberships_of_user(user_id)
            for member in memberships:
                if member.is_admin and count_admins(self.store, member.team_id) <= 1:
                    team = self.store.get(Team, member.team_id)
                    team_name = team.name if team is not None else member.team_id
                    raise Unauthorized(
                        f"You are the only admin of team '{team_name}'. "
                        "Promote another admin or delete the team first."
                    )

            unassigned = 0
            for task in self.store.tasks_assigned_to(user_id):
                apply_assignment(self.store, task, None, changed_by_user_id=user_id)
                unassigned += 1
            for member in memberships:
                self.store.delete_cascade(TeamMember, member.id)
            self.store.delete_cascade(User, user_id)

        logger.info(
            "user_deleted",
            user_id=user_id,
            memberships_removed=len(memberships),
            tasks_unassigned=unassigned,
        )
