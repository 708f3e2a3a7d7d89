"""Task endpoints, including assignment and its history."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from taskboard.api.v1.auth import Caller, MessageResponse, UserResponse
from taskboard.models import AssignmentHistory, Task, TaskStatus, User
from taskboard.services.tasks import UNSET, TaskService
from taskboard.store import EntityStore, StoreDep

router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class TaskCreate(BaseModel):
    """Task create request."""

    team_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


class TaskUpdate(BaseModel):
    """Task update request. Omitted fields stay unchanged."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


class TaskAssign(BaseModel):
    user_id: str = Field(..., min_length=1)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskResponse(BaseModel):
    """Task response."""

    id: str
    team_id: str
    assigned_user_id: str | None
    assigned_user: UserResponse | None = None
    title: str
    description: str | None
    status: TaskStatus
    created_at: datetime
    updated_at: datetime


class AssignmentHistoryResponse(BaseModel):
    """One assignee change. Users deleted since are rendered as null."""

    id: str
    task_id: str
    from_user_id: str | None
    to_user_id: str | None
    changed_by_user_id: str
    from_user: UserResponse | None = None
    to_user: UserResponse | None = None
    changed_by: UserResponse | None = None
    changed_at: datetime


# ============================================================================
# Helpers
# ============================================================================

def user_summary(store: EntityStore, user_id: str | None) -> UserResponse | None:
    if user_id is None:
        return None
    user = store.get(User, user_id)
    return UserResponse.model_validate(user) if user is not None else None


def task_response(store: EntityStore, task: Task) -> TaskResponse:
    """Snapshot a task and its assignee. Callers hold ``store.atomic()``."""
    return TaskResponse(
        id=task.id,
        team_id=task.team_id,
        assigned_user_id=task.assigned_user_id,
        assigned_user=user_summary(store, task.assigned_user_id),
        title=task.title,
        description=task.description,
        status=task.status,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def history_response(store: EntityStore, record: AssignmentHistory) -> AssignmentHistoryResponse:
    return AssignmentHistoryResponse(
        id=record.id,
        task_id=record.task_id,
        from_user_id=record.from_user_id,
        to_user_id=record.to_user_id,
        changed_by_user_id=record.changed_by_user_id,
        from_user=user_summary(store, record.from_user_id),
        to_user=user_summary(store, record.to_user_id),
        changed_by=user_summary(store, record.changed_by_user_id),
        changed_at=record.changed_at,
    )


def get_task_service(store: StoreDep) -> TaskService:
    return TaskService(store)


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


# ============================================================================
# Endpoints
# ============================================================================

@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    body: TaskCreate,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> TaskResponse:
    """Create a task in a team you belong to."""
    with store.atomic():
        task = service.create_task(caller, body.team_id, body.title, body.description)
        return task_response(store, task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, caller: Caller, service: TaskServiceDep, store: StoreDep) -> TaskResponse:
    with store.atomic():
        return task_response(store, service.get_task(caller, task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> TaskResponse:
    """Edit a task. Team admins or the task's assignee only.

    An explicit ``"description": null`` clears the description; omitting it
    keeps the current one.
    """
    description = body.description if "description" in body.model_fields_set else UNSET
    with store.atomic():
        task = service.update_task(caller, task_id, title=body.title, description=description)
        return task_response(store, task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(task_id: str, caller: Caller, service: TaskServiceDep) -> MessageResponse:
    service.delete_task(caller, task_id)
    return MessageResponse(success=True, message="Task deleted successfully.")


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    body: TaskAssign,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> TaskResponse:
    with store.atomic():
        return task_response(store, service.assign_task(caller, task_id, body.user_id))


@router.post("/{task_id}/unassign", response_model=TaskResponse)
async def unassign_task(task_id: str, caller: Caller, service: TaskServiceDep, store: StoreDep) -> TaskResponse:
    with store.atomic():
        return task_response(store, service.unassign_task(caller, task_id))


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: str,
    body: TaskStatusUpdate,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> TaskResponse:
    with store.atomic():
        return task_response(store, service.update_task_status(caller, task_id, body.status))


@router.get("/{task_id}/history", response_model=list[AssignmentHistoryResponse])
async def get_assignment_history(
    task_id: str,
    caller: Caller,
    service: TaskServiceDep,
    store: StoreDep,
) -> list[AssignmentHistoryResponse]:
    """Assignment history of a task, oldest first."""
    with store.atomic():
        return [history_response(store, record) for record in service.get_assignment_history(caller, task_id)]
