"""Membership endpoints addressed by membership id."""

from fastapi import APIRouter
from pydantic import BaseModel

from taskboard.api.v1.auth import Caller, MessageResponse
from taskboard.api.v1.teams import TeamMemberResponse, TeamServiceDep, member_response
from taskboard.models import TeamRole
from taskboard.store import StoreDep

router = APIRouter()


class TeamMemberRoleUpdate(BaseModel):
    """Update team member role."""

    role: TeamRole


@router.patch("/{member_id}", response_model=TeamMemberResponse)
async def update_member_role(
    member_id: str,
    body: TeamMemberRoleUpdate,
    caller: Caller,
    service: TeamServiceDep,
    store: StoreDep,
) -> TeamMemberResponse:
    """Change a member's role. You cannot demote yourself as the only admin."""
    with store.atomic():
        member = service.update_member_role(caller, member_id, body.role)
        return member_response(store, member)


@router.delete("/{member_id}", response_model=MessageResponse)
async def remove_member(member_id: str, caller: Caller, service: TeamServiceDep) -> MessageResponse:
    """Remove a member. Their tasks in the team become unassigned."""
    service.remove_member(caller, member_id)
    return MessageResponse(success=True, message="Team member removed successfully.")
