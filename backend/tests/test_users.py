"""Tests for taskboard.services.users.UserService."""

import pytest

from taskboard.errors import EmailAlreadyExists, NotFound, Unauthenticated, Unauthorized
from taskboard.models import TaskStatus, TeamMember, TeamRole, User


class TestQueries:

    def test_list_requires_authentication(self, user_service):
        with pytest.raises(Unauthenticated):
            user_service.list_users(None)

    def test_list_and_get(self, user_service, alice, bob):
        assert {u.id for u in user_service.list_users(alice)} == {alice.user_id, bob.user_id}
        assert user_service.get_user(alice, bob.user_id).email == "bob@example.com"

    def test_missing_user_is_not_found(self, user_service, alice):
        with pytest.raises(NotFound, match="User"):
            user_service.get_user(alice, "404")


class TestUpdateUser:

    def test_update_own_profile(self, user_service, alice):
        user = user_service.update_user(alice, alice.user_id, email="alice@example.org", name="Al")
        assert (user.email, user.name) == ("alice@example.org", "Al")

    def test_cannot_update_someone_else(self, store, user_service, alice, bob):
        with pytest.raises(Unauthorized, match="your own account"):
            user_service.update_user(alice, bob.user_id, name="Hacked")
        assert store.get(User, bob.user_id).name == "Bob"

    def test_email_must_stay_unique(self, user_service, alice, bob):
        with pytest.raises(EmailAlreadyExists):
            user_service.update_user(alice, alice.user_id, email="bob@example.com")

    def test_keeping_own_email_is_fine(self, user_service, alice):
        assert user_service.update_user(alice, alice.user_id, email="alice@example.com").email == "alice@example.com"


class TestDeleteUser:

    def test_cannot_delete_someone_else(self, store, user_service, alice, bob):
        with pytest.raises(Unauthorized):
            user_service.delete_user(alice, bob.user_id)
        assert store.get(User, bob.user_id) is not None

    def test_sole_admin_is_refused(self, store, user_service, team, alice):
        with pytest.raises(Unauthorized, match="only admin"):
            user_service.delete_user(alice, alice.user_id)
        assert store.get(User, alice.user_id) is not None
        assert store.find_member(alice.user_id, team.id) is not None

    def test_delete_unassigns_and_removes_memberships(self, store, user_service, task_service, team, task, alice, bob):
        task_service.assign_task(alice, task.id, bob.user_id)

        user_service.delete_user(bob, bob.user_id)

        assert store.get(User, bob.user_id) is None
        assert store.find_by(TeamMember, lambda m: m.user_id == bob.user_id) == []
        assert task.assigned_user_id is None
        assert task.status == TaskStatus.UNASSIGNED

        # history keeps the deleted user's id
        history = store.history_of_task(task.id)
        assert (history[-1].from_user_id, history[-1].changed_by_user_id) == (bob.user_id, bob.user_id)

    def test_admin_with_co_admin_may_leave(self, store, user_service, team_service, team, alice, bob):
        team_service.update_member_role(alice, store.find_member(bob.user_id, team.id).id, TeamRole.ADMIN)

        user_service.delete_user(alice, alice.user_id)

        assert store.get(User, alice.user_id) is None
        assert [m.user_id for m in store.members_of_team(team.id)] == [bob.user_id]
