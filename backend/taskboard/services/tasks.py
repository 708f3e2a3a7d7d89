"""Task lifecycle and the assignment state machine.

Assignment changes are the only audited transitions: every assign or
unassign appends exactly one ``AssignmentHistory`` row and updates the
task's assignee and status in the same locked step. Plain status changes are
not audited.

Status must agree with assignment:

    no assignee   -> UNASSIGNED
    has assignee  -> ASSIGNED | IN_PROGRESS | DONE   (free movement, reopen allowed)

``update_task_status`` cannot cross that line; ``assign_task`` and
``unassign_task`` are the only ways across.
"""

from datetime import datetime
from typing import Any

import structlog

from taskboard.errors import NotFound, ValidationError
from taskboard.models import AssignmentHistory, Task, TaskStatus, Team, TeamRole, User, utcnow
from taskboard.security import Identity
from taskboard.services.access_control import (
    require_authenticated,
    require_role,
    require_task_owner_or_admin,
    require_team_member,
)
from taskboard.store import EntityStore

logger = structlog.get_logger()

ASSIGNED_STATUSES = frozenset({TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.DONE})

# Marks an update field the caller left out, as opposed to one set to None
UNSET: Any = object()


def apply_assignment(
    store: EntityStore,
    task: Task,
    to_user_id: str | None,
    changed_by_user_id: str,
    now: datetime | None = None,
) -> AssignmentHistory:
    """Record an assignee change and apply it to ``task``.

    Callers hold ``store.atomic()`` and have already run their permission
    and membership checks.
    """
    now = now or utcnow()
    record = store.insert(
        AssignmentHistory(
            task_id=task.id,
            from_user_id=task.assigned_user_id,
            to_user_id=to_user_id,
            changed_by_user_id=changed_by_user_id,
            changed_at=now,
        )
    )
    task.assigned_user_id = to_user_id
    task.status = TaskStatus.ASSIGNED if to_user_id is not None else TaskStatus.UNASSIGNED
    task.updated_at = now
    return record


def check_status_transition(task: Task, status: TaskStatus) -> None:
    """Raise unless ``status`` is consistent with the task's assignment."""
    if task.assigned_user_id is None and status != TaskStatus.UNASSIGNED:
        raise ValidationError("Assign the task before changing its status.")
    if task.assigned_user_id is not None and status not in ASSIGNED_STATUSES:
        raise ValidationError("Use unassign to clear the task's assignee.")


class TaskService:
    """Service for task CRUD, assignment and status changes."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _get_task(self, task_id: str) -> Task:
        task = self.store.get(Task, task_id)
        if task is None:
            raise NotFound("Task")
        return task

    # =========================================================================
    # Queries
    # =========================================================================

    def list_tasks(self, caller: Identity | None, team_id: str) -> list[Task]:
        require_authenticated(caller)
        with self.store.atomic():
            if self.store.get(Team, team_id) is None:
                raise NotFound("Team")
            require_team_member(self.store, caller, team_id)
            return self.store.tasks_of_team(team_id)

    def get_task(self, caller: Identity | None, task_id: str) -> Task:
        require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_team_member(self.store, caller, task.team_id)
            return task

    def get_assignment_history(self, caller: Identity | None, task_id: str) -> list[AssignmentHistory]:
        """Assignment history of a task, oldest first."""
        require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_team_member(self.store, caller, task.team_id)
            return self.store.history_of_task(task_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_task(
        self,
        caller: Identity | None,
        team_id: str,
        title: str,
        description: str | None = None,
    ) -> Task:
        """Create an unassigned task. Any team member may do this."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            if self.store.get(Team, team_id) is None:
                raise NotFound("Team")
            require_team_member(self.store, caller, team_id)

            now = utcnow()
            task = self.store.insert(
                Task(
                    team_id=team_id,
                    title=title,
                    description=description,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info("task_created", task_id=task.id, team_id=team_id, user_id=identity.user_id)
        return task

    def update_task(
        self,
        caller: Identity | None,
        task_id: str,
        title: str | None = None,
        description: str | None = UNSET,
    ) -> Task:
        """Edit title and description. A description of None clears it."""
        require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_task_owner_or_admin(self.store, caller, task)

            if title is not None:
                task.title = title
            if description is not UNSET:
                task.description = description
            task.updated_at = utcnow()

        logger.info("task_updated", task_id=task_id)
        return task

    def delete_task(self, caller: Identity | None, task_id: str) -> None:
        identity = require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_role(self.store, caller, task.team_id, TeamRole.ADMIN)
            self.store.delete_cascade(Task, task_id)

        logger.info("task_deleted", task_id=task_id, user_id=identity.user_id)

    def assign_task(self, caller: Identity | None, task_id: str, user_id: str) -> Task:
        """Assign a task to a member of its team, recording the change."""
        identity = require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_role(self.store, caller, task.team_id, TeamRole.ADMIN)

            if self.store.get(User, user_id) is None:
                raise NotFound("User")
            if self.store.find_member(user_id, task.team_id) is None:
                raise ValidationError("User is not a member of this team.")

            record = apply_assignment(self.store, task, user_id, changed_by_user_id=identity.user_id)

        logger.info(
            "task_assigned",
            task_id=task_id,
            from_user_id=record.from_user_id,
            to_user_id=user_id,
            changed_by=identity.user_id,
        )
        return task

    def unassign_task(self, caller: Identity | None, task_id: str) -> Task:
        identity = require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_role(self.store, caller, task.team_id, TeamRole.ADMIN)
            record = apply_assignment(self.store, task, None, changed_by_user_id=identity.user_id)

        logger.info(
            "task_unassigned",
            task_id=task_id,
            from_user_id=record.from_user_id,
            changed_by=identity.user_id,
        )
        return task

    def update_task_status(self, caller: Identity | None, task_id: str, status: TaskStatus) -> Task:
        require_authenticated(caller)
        with self.store.atomic():
            task = self._get_task(task_id)
            require_task_owner_or_admin(self.store, caller, task)
            check_status_transition(task, status)

            previous = task.status
            task.status = status
            task.updated_at = utcnow()

        logger.info(
            "task_status_updated",
            task_id=task_id,
            from_status=previous.value,
            to_status=status.value,
        )
        return task
