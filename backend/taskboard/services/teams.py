"""Team and membership lifecycle.

A team always has at least one ADMIN: the creator is made ADMIN in the same
atomic step that creates the team, and an admin may not demote or remove
their own membership while they are the team's only admin.
"""

import structlog

from taskboard.errors import NotFound, Unauthorized, ValidationError
from taskboard.models import Team, TeamMember, TeamRole, User, utcnow
from taskboard.security import Identity
from taskboard.services.access_control import (
    require_authenticated,
    require_existing_user,
    require_role,
    require_team_member,
)
from taskboard.services.tasks import apply_assignment
from taskboard.store import EntityStore

logger = structlog.get_logger()


def count_admins(store: EntityStore, team_id: str) -> int:
    return sum(1 for member in store.members_of_team(team_id) if member.is_admin)


class TeamService:
    """Service for managing teams and their memberships."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _get_team(self, team_id: str) -> Team:
        team = self.store.get(Team, team_id)
        if team is None:
            raise NotFound("Team")
        return team

    def _get_member(self, member_id: str) -> TeamMember:
        member = self.store.get(TeamMember, member_id)
        if member is None:
            raise NotFound("Team member")
        return member

    # =========================================================================
    # Queries
    # =========================================================================

    def list_teams(self, caller: Identity | None) -> list[Team]:
        """Teams the caller belongs to."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            teams = (self.store.get(Team, m.team_id) for m in self.store.memberships_of_user(identity.user_id))
            return [team for team in teams if team is not None]

    def get_team(self, caller: Identity | None, team_id: str) -> Team:
        require_authenticated(caller)
        with self.store.atomic():
            team = self._get_team(team_id)
            require_team_member(self.store, caller, team_id)
            return team

    def list_members(self, caller: Identity | None, team_id: str) -> list[TeamMember]:
        require_authenticated(caller)
        with self.store.atomic():
            self._get_team(team_id)
            require_team_member(self.store, caller, team_id)
            return self.store.members_of_team(team_id)

    # =========================================================================
    # Team mutations
    # =========================================================================

    def create_team(self, caller: Identity | None, name: str) -> Team:
        """Create a team with the caller as its sole ADMIN."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            require_existing_user(self.store, caller)
            now = utcnow()
            team = self.store.insert(Team(name=name, created_at=now))
            self.store.insert(
                TeamMember(
                    user_id=identity.user_id,
                    team_id=team.id,
                    role=TeamRole.ADMIN,
                    joined_at=now,
                )
            )

        logger.info("team_created", team_id=team.id, user_id=identity.user_id)
        return team

    def update_team(self, caller: Identity | None, team_id: str, name: str | None = None) -> Team:
        require_authenticated(caller)
        with self.store.atomic():
            team = self._get_team(team_id)
            require_role(self.store, caller, team_id, TeamRole.ADMIN)
            if name is not None:
                team.name = name

        logger.info("team_updated", team_id=team_id)
        return team

    def delete_team(self, caller: Identity | None, team_id: str) -> None:
        """Delete a team with its tasks, their history and its memberships."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            self._get_team(team_id)
            require_role(self.store, caller, team_id, TeamRole.ADMIN)
            removed = self.store.delete_cascade(Team, team_id)

        logger.info(
            "team_deleted",
            team_id=team_id,
            user_id=identity.user_id,
            records_removed=removed,
        )

    # =========================================================================
    # Membership mutations
    # =========================================================================

    def add_member(
        self,
        caller: Identity | None,
        user_id: str,
        team_id: str,
        role: TeamRole = TeamRole.USER,
    ) -> TeamMember:
        require_authenticated(caller)
        with self.store.atomic():
            self._get_team(team_id)
            require_role(self.store, caller, team_id, TeamRole.ADMIN)

            if self.store.get(User, user_id) is None:
                raise NotFound("User")
            if self.store.find_member(user_id, team_id) is not None:
                raise ValidationError("User is already a member of this team.")

            member = self.store.insert(TeamMember(user_id=user_id, team_id=team_id, role=role))

        logger.info(
            "team_member_added",
            team_id=team_id,
            user_id=user_id,
            member_id=member.id,
            role=role.value,
        )
        return member

    def update_member_role(self, caller: Identity | None, member_id: str, role: TeamRole) -> TeamMember:
        require_authenticated(caller)
        with self.store.atomic():
            member = self._get_member(member_id)
            actor = require_role(self.store, caller, member.team_id, TeamRole.ADMIN)

            if actor.id == member_id and role != TeamRole.ADMIN:
                if count_admins(self.store, member.team_id) <= 1:
                    raise Unauthorized("Cannot demote yourself; you are the only admin.")

            member.role = role

        logger.info(
            "team_member_role_updated",
            team_id=member.team_id,
            member_id=member_id,
            role=role.value,
        )
        return member

    def remove_member(self, caller: Identity | None, member_id: str) -> None:
        """Remove a membership, unassigning the member's tasks in that team."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            member = self._get_member(member_id)
            actor = require_role(self.store, caller, member.team_id, TeamRole.ADMIN)

            if actor.id == member_id and count_admins(self.store, member.team_id) <= 1:
                raise Unauthorized("Cannot remove yourself; you are the only admin.")

            for task in self.store.tasks_assigned_to(member.user_id, member.team_id):
                apply_assignment(self.store, task, None, changed_by_user_id=identity.user_id)

            self.store.delete_cascade(TeamMember, member_id)

        logger.info(
            "team_member_removed",
            team_id=member.team_id,
            member_id=member_id,
            user_id=member.user_id,
        )
