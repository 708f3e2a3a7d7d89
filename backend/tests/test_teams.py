"""Tests for taskboard.services.teams.TeamService."""

import pytest

from taskboard.errors import NotFound, Unauthenticated, Unauthorized, ValidationError
from taskboard.models import AssignmentHistory, Task, TaskStatus, Team, TeamMember, TeamRole


def admins_of(store, team_id):
    return [m for m in store.members_of_team(team_id) if m.role == TeamRole.ADMIN]


class TestCreateTeam:

    def test_creator_is_sole_admin(self, store, team_service, alice):
        team = team_service.create_team(alice, "Eng")

        members = store.members_of_team(team.id)
        assert len(members) == 1
        assert members[0].user_id == alice.user_id
        assert members[0].role == TeamRole.ADMIN

    def test_requires_authentication(self, store, team_service):
        with pytest.raises(Unauthenticated):
            team_service.create_team(None, "Eng")
        assert store.count(Team) == 0

    def test_deleted_user_cannot_create_team(self, store, team_service, user_service, alice):
        user_service.delete_user(alice, alice.user_id)

        with pytest.raises(Unauthenticated):
            team_service.create_team(alice, "Ghost")

        assert store.count(Team) == 0
        assert store.find_by(TeamMember, lambda m: m.user_id == alice.user_id) == []

    def test_list_teams_returns_only_callers_teams(self, team_service, alice, bob):
        eng = team_service.create_team(alice, "Eng")
        team_service.create_team(bob, "Ops")
        assert team_service.list_teams(alice) == [eng]


class TestTeamQueries:

    def test_member_can_read_team(self, team_service, team, bob):
        assert team_service.get_team(bob, team.id) is team

    def test_non_member_cannot_read_team(self, team_service, team, carol):
        with pytest.raises(Unauthorized):
            team_service.get_team(carol, team.id)

    def test_missing_team_is_not_found(self, team_service, alice):
        with pytest.raises(NotFound):
            team_service.get_team(alice, "404")

    def test_non_member_cannot_list_members(self, team_service, team, carol):
        with pytest.raises(Unauthorized):
            team_service.list_members(carol, team.id)

    def test_list_members(self, team_service, team, alice, bob):
        user_ids = {m.user_id for m in team_service.list_members(bob, team.id)}
        assert user_ids == {alice.user_id, bob.user_id}


class TestUpdateAndDeleteTeam:

    def test_admin_renames_team(self, team_service, team, alice):
        assert team_service.update_team(alice, team.id, name="Platform").name == "Platform"

    def test_update_without_name_keeps_name(self, team_service, team, alice):
        assert team_service.update_team(alice, team.id).name == "Eng"

    def test_non_admin_cannot_rename(self, team_service, team, bob):
        with pytest.raises(Unauthorized):
            team_service.update_team(bob, team.id, name="Mine")
        assert team.name == "Eng"

    def test_update_missing_team_is_not_found(self, team_service, alice):
        with pytest.raises(NotFound):
            team_service.update_team(alice, "404", name="x")

    def test_delete_cascades(self, store, team_service, task_service, team, alice, bob):
        task = task_service.create_task(alice, team.id, "Fix bug")
        task_service.assign_task(alice, task.id, bob.user_id)

        team_service.delete_team(alice, team.id)

        assert store.get(Team, team.id) is None
        assert store.get(Task, task.id) is None
        assert store.members_of_team(team.id) == []
        assert all(h.task_id != task.id for h in store.all(AssignmentHistory))

    def test_non_admin_delete_leaves_team_intact(self, store, team_service, task_service, team, alice, bob):
        task = task_service.create_task(alice, team.id, "Fix bug")

        with pytest.raises(Unauthorized):
            team_service.delete_team(bob, team.id)

        assert store.get(Team, team.id) is team
        assert store.get(Task, task.id) is task
        assert len(store.members_of_team(team.id)) == 2


class TestAddMember:

    def test_default_role_is_user(self, team_service, alice, carol):
        team = team_service.create_team(alice, "Eng")
        member = team_service.add_member(alice, carol.user_id, team.id)
        assert member.role == TeamRole.USER

    def test_duplicate_membership_is_rejected(self, store, team_service, team, alice, bob):
        with pytest.raises(ValidationError, match="already a member"):
            team_service.add_member(alice, bob.user_id, team.id)
        assert len([m for m in store.members_of_team(team.id) if m.user_id == bob.user_id]) == 1

    def test_unknown_user_is_not_found(self, team_service, team, alice):
        with pytest.raises(NotFound, match="User"):
            team_service.add_member(alice, "404", team.id)

    def test_unknown_team_is_not_found(self, team_service, alice, carol):
        with pytest.raises(NotFound, match="Team"):
            team_service.add_member(alice, carol.user_id, "404")

    def test_non_admin_cannot_add(self, team_service, team, bob, carol):
        with pytest.raises(Unauthorized):
            team_service.add_member(bob, carol.user_id, team.id)


class TestLastAdminInvariant:

    def test_sole_admin_cannot_demote_self(self, team_service, alice):
        team = team_service.create_team(alice, "Eng")
        member = team_service.list_members(alice, team.id)[0]

        with pytest.raises(Unauthorized, match="only admin"):
            team_service.update_member_role(alice, member.id, TeamRole.USER)
        assert member.role == TeamRole.ADMIN

    def test_sole_admin_cannot_remove_self(self, store, team_service, team, alice):
        member = store.find_member(alice.user_id, team.id)

        with pytest.raises(Unauthorized, match="only admin"):
            team_service.remove_member(alice, member.id)
        assert store.get(TeamMember, member.id) is member

    def test_admin_may_demote_self_when_another_admin_exists(self, store, team_service, team, alice, bob):
        bob_member = store.find_member(bob.user_id, team.id)
        team_service.update_member_role(alice, bob_member.id, TeamRole.ADMIN)

        alice_member = store.find_member(alice.user_id, team.id)
        team_service.update_member_role(alice, alice_member.id, TeamRole.USER)

        assert alice_member.role == TeamRole.USER
        assert len(admins_of(store, team.id)) == 1

    def test_admin_may_leave_when_another_admin_exists(self, store, team_service, team, alice, bob):
        bob_member = store.find_member(bob.user_id, team.id)
        team_service.update_member_role(alice, bob_member.id, TeamRole.ADMIN)

        team_service.remove_member(alice, store.find_member(alice.user_id, team.id).id)

        assert store.find_member(alice.user_id, team.id) is None
        assert admins_of(store, team.id) == [bob_member]

    def test_self_promotion_noop_is_allowed(self, store, team_service, team, alice):
        member = store.find_member(alice.user_id, team.id)
        assert team_service.update_member_role(alice, member.id, TeamRole.ADMIN).role == TeamRole.ADMIN


class TestMemberMutations:

    def test_non_admin_cannot_change_roles(self, store, team_service, team, bob):
        member = store.find_member(bob.user_id, team.id)
        with pytest.raises(Unauthorized):
            team_service.update_member_role(bob, member.id, TeamRole.ADMIN)
        assert member.role == TeamRole.USER

    def test_unknown_member_is_not_found(self, team_service, alice):
        with pytest.raises(NotFound, match="Team member"):
            team_service.remove_member(alice, "404")

    def test_removing_member_unassigns_their_tasks(self, store, team_service, task_service, team, task, alice, bob):
        task_service.assign_task(alice, task.id, bob.user_id)

        team_service.remove_member(alice, store.find_member(bob.user_id, team.id).id)

        assert task.assigned_user_id is None
        assert task.status == TaskStatus.UNASSIGNED
        last = store.history_of_task(task.id)[-1]
        assert (last.from_user_id, last.to_user_id, last.changed_by_user_id) == (
            bob.user_id,
            None,
            alice.user_id,
        )
