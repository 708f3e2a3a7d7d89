"""Team management endpoints.

Anyone can create a team and becomes its first ADMIN. Members, tasks and the
team itself are only visible to members.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from taskboard.api.v1.auth import Caller, MessageResponse, UserResponse
from taskboard.api.v1.tasks import TaskResponse, TaskServiceDep, task_response, user_summary
from taskboard.models import TeamMember, TeamRole
from taskboard.services.teams import TeamService
from taskboard.store import EntityStore, StoreDep

router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class TeamCreate(BaseModel):
    """Team create request."""

    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


class TeamUpdate(BaseModel):
    """Team update request."""

    name: str | None = Field(None, min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


class TeamResponse(BaseModel):
    """Team response."""

    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class TeamMemberAdd(BaseModel):
    """Add team member request."""

    user_id: str = Field(..., min_length=1)
    role: TeamRole = TeamRole.USER


class TeamMemberResponse(BaseModel):
    """Team member response."""

    id: str
    user_id: str
    team_id: str
    role: TeamRole
    joined_at: datetime
    user: UserResponse | None = None


def member_response(store: EntityStore, member: TeamMember) -> TeamMemberResponse:
    return TeamMemberResponse(
        id=member.id,
        user_id=member.user_id,
        team_id=member.team_id,
        role=member.role,
        joined_at=member.joined_at,
        user=user_summary(store, member.user_id),
    )


def get_team_service(store: StoreDep) -> TeamService:
    return TeamService(store)


TeamServiceDep = Annotated[TeamService, Depends(get_team_service)]


# ============================================================================
# Teams
# ============================================================================

@router.get("", response_model=list[TeamResponse])
async def list_teams(caller: Caller, service: TeamServiceDep, store: StoreDep) -> list[TeamResponse]:
    """Teams you belong to."""
    with store.atomic():
        return [TeamResponse.model_validate(team) for team in service.list_teams(caller)]


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(body: TeamCreate, caller: Caller, service: TeamServiceDep, store: StoreDep) -> TeamResponse:
    """Create a team. The creator becomes its ADMIN."""
    with store.atomic():
        return TeamResponse.model_validate(service.create_team(caller, body.name))


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(team_id: str, caller: Caller, service: TeamServiceDep, store: StoreDep) -> TeamResponse:
    with store.atomic():
        return TeamResponse.model_validate(service.get_team(caller, team_id))


@router.patch("/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: str,
    body: TeamUpdate,
    caller: Caller,
    service: TeamServiceDep,
    store: StoreDep,
) -> TeamResponse:
    with store.atomic():
        return TeamResponse.model_validate(service.update_team(caller, team_id, name=body.name))


@router.delete("/{team_id}", response_model=MessageResponse)
async def delete_team(team_id: str, caller: Caller, service: TeamServiceDep) -> MessageResponse:
    """Delete a team together with its tasks and memberships."""
    service.delete_team(caller, team_id)
    return MessageResponse(success=True, message="Team deleted successfully.")


# ============================================================================
# Members
# ============================================================================

@router.get("/{team_id}/members", response_model=list[TeamMemberResponse])
async def list_members(
    team_id: str,
    caller: Caller,
    service: TeamServiceDep,
    store: StoreDep,
) -> list[TeamMemberResponse]:
    with store.atomic():
        return [member_response(store, member) for member in service.list_members(caller, team_id)]


@router.post("/{team_id}/members", response_model=TeamMemberResponse, status_code=201)
async def add_member(
    team_id: str,
    body: TeamMemberAdd,
    caller: Caller,
    service: TeamServiceDep,
    store: StoreDep,
) -> TeamMemberResponse:
    with store.atomic():
        member = service.add_member(caller, body.user_id, team_id, role=body.role)
        return member_response(store, member)


# ============================================================================
# Tasks
# ============================================================================

@router.get("/{team_id}/tasks", response_model=list[TaskResponse])
async def list_team_tasks(
    team_id: str,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> list[TaskResponse]:
    with store.atomic():
        return [task_response(store, task) for task in service.list_tasks(caller, team_id)]
