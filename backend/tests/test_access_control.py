"""Tests for taskboard.services.access_control."""

import pytest

from taskboard.errors import Unauthenticated, Unauthorized
from taskboard.models import TeamRole, User
from taskboard.services.access_control import (
    require_authenticated,
    require_existing_user,
    require_role,
    require_task_owner_or_admin,
    require_team_member,
)


class TestRequireAuthenticated:

    def test_anonymous_is_rejected(self):
        with pytest.raises(Unauthenticated):
            require_authenticated(None)

    def test_identity_is_returned(self, alice):
        assert require_authenticated(alice) is alice


class TestRequireExistingUser:

    def test_returns_user_record(self, store, alice):
        assert require_existing_user(store, alice).email == "alice@example.com"

    def test_deleted_user_is_unauthenticated(self, store, alice):
        store.delete_cascade(User, alice.user_id)
        with pytest.raises(Unauthenticated):
            require_existing_user(store, alice)


class TestRequireTeamMember:

    def test_member_gets_membership(self, store, team, bob):
        member = require_team_member(store, bob, team.id)
        assert member.user_id == bob.user_id
        assert member.team_id == team.id

    def test_non_member_is_rejected(self, store, team, carol):
        with pytest.raises(Unauthorized, match="not a member"):
            require_team_member(store, carol, team.id)

    def test_anonymous_fails_authentication_first(self, store, team):
        with pytest.raises(Unauthenticated):
            require_team_member(store, None, team.id)


class TestRequireRole:

    def test_admin_passes_admin_gate(self, store, team, alice):
        assert require_role(store, alice, team.id, TeamRole.ADMIN).role == TeamRole.ADMIN

    def test_user_fails_admin_gate_with_roles_listed(self, store, team, bob):
        with pytest.raises(Unauthorized) as exc_info:
            require_role(store, bob, team.id, TeamRole.ADMIN)
        assert "ADMIN" in exc_info.value.message

    def test_multiple_allowed_roles(self, store, team, bob):
        member = require_role(store, bob, team.id, TeamRole.ADMIN, TeamRole.USER)
        assert member.role == TeamRole.USER

    def test_non_member_fails_before_role_check(self, store, team, carol):
        with pytest.raises(Unauthorized, match="not a member"):
            require_role(store, carol, team.id, TeamRole.ADMIN)


class TestRequireTaskOwnerOrAdmin:

    def test_admin_may_modify_any_task(self, store, task, alice):
        assert require_task_owner_or_admin(store, alice, task).user_id == alice.user_id

    def test_assignee_may_modify(self, store, task_service, task, alice, bob):
        task_service.assign_task(alice, task.id, bob.user_id)
        assert require_task_owner_or_admin(store, bob, task).user_id == bob.user_id

    def test_other_member_may_not_modify(self, store, task, bob):
        with pytest.raises(Unauthorized, match="assigned to you"):
            require_task_owner_or_admin(store, bob, task)
