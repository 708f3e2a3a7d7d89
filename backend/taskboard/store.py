"""In-memory entity store.

Holds the five entity collections as id-indexed dicts, hands out ids from a
single shared sequence and implements cascading deletes. All access is
serialized behind one re-entrant lock; services wrap their check-then-mutate
sequences in ``atomic()`` so no partial state is ever observable.
"""

import itertools
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Annotated, TypeVar

import structlog
from fastapi import Depends, Request

from taskboard.errors import InternalError
from taskboard.models import (
    ENTITY_KINDS,
    AssignmentHistory,
    Task,
    Team,
    TeamMember,
    User,
)

logger = structlog.get_logger()

E = TypeVar("E")


class IdGenerator:
    """Monotonic id sequence shared by every entity kind. Ids are never reused."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            return str(next(self._counter))


class EntityStore:
    """Exclusive owner of all entity collections."""

    def __init__(self, id_generator: IdGenerator | None = None):
        self._ids = id_generator or IdGenerator()
        self._lock = threading.RLock()
        self._collections: dict[type, dict[str, object]] = {kind: {} for kind in ENTITY_KINDS}
        # Revoked refresh-token ids -> token expiry
        self._revoked_tokens: dict[str, datetime] = {}

    @contextmanager
    def atomic(self) -> Iterator["EntityStore"]:
        """Hold the store lock for a multi-step operation."""
        with self._lock:
            yield self

    def _collection(self, kind: type) -> dict[str, object]:
        try:
            return self._collections[kind]
        except KeyError:
            raise InternalError(f"Unknown entity kind: {kind.__name__}") from None

    # =========================================================================
    # Primitives
    # =========================================================================

    def insert(self, entity: E) -> E:
        """Assign a fresh id to ``entity`` and store it."""
        with self._lock:
            collection = self._collection(type(entity))
            entity_id = self._ids.next_id()
            if entity_id in collection:
                raise InternalError(f"Duplicate id {entity_id} for {type(entity).__name__}")
            entity.id = entity_id
            collection[entity_id] = entity
            return entity

    def get(self, kind: type[E], entity_id: str) -> E | None:
        with self._lock:
            return self._collection(kind).get(entity_id)

    def all(self, kind: type[E]) -> list[E]:
        """All records of a kind, in insertion (id) order."""
        with self._lock:
            return list(self._collection(kind).values())

    def find_by(self, kind: type[E], predicate: Callable[[E], bool]) -> list[E]:
        with self._lock:
            return [entity for entity in self._collection(kind).values() if predicate(entity)]

    def count(self, kind: type) -> int:
        with self._lock:
            return len(self._collection(kind))

    def delete_cascade(self, kind: type, entity_id: str) -> int:
        """Delete an entity and every record that references it.

        Team: its tasks (with their history) and memberships.
        Task: its assignment history.
        TeamMember, User, AssignmentHistory: the record alone.

        Returns the number of records removed, 0 if the entity was absent.
        """
        with self._lock:
            if entity_id not in self._collection(kind):
                return 0

            removed = 0
            if kind is Team:
                for task in self.tasks_of_team(entity_id):
                    removed += self.delete_cascade(Task, task.id)
                for member in self.members_of_team(entity_id):
                    removed += self._delete(TeamMember, member.id)
            elif kind is Task:
                for record in self.history_of_task(entity_id):
                    removed += self._delete(AssignmentHistory, record.id)

            removed += self._delete(kind, entity_id)

        logger.debug(
            "entity_deleted",
            kind=kind.__name__,
            entity_id=entity_id,
            records_removed=removed,
        )
        return removed

    def _delete(self, kind: type, entity_id: str) -> int:
        return 1 if self._collection(kind).pop(entity_id, None) is not None else 0

    # =========================================================================
    # Reverse lookups
    # =========================================================================

    def find_user_by_email(self, email: str) -> User | None:
        """Exact, case-sensitive email match."""
        matches = self.find_by(User, lambda u: u.email == email)
        return matches[0] if matches else None

    def find_member(self, user_id: str, team_id: str) -> TeamMember | None:
        matches = self.find_by(
            TeamMember, lambda m: m.user_id == user_id and m.team_id == team_id
        )
        return matches[0] if matches else None

    def members_of_team(self, team_id: str) -> list[TeamMember]:
        return self.find_by(TeamMember, lambda m: m.team_id == team_id)

    def memberships_of_user(self, user_id: str) -> list[TeamMember]:
        return self.find_by(TeamMember, lambda m: m.user_id == user_id)

    def tasks_of_team(self, team_id: str) -> list[Task]:
        return self.find_by(Task, lambda t: t.team_id == team_id)

    def tasks_assigned_to(self, user_id: str, team_id: str | None = None) -> list[Task]:
        return self.find_by(
            Task,
            lambda t: t.assigned_user_id == user_id
            and (team_id is None or t.team_id == team_id),
        )

    def history_of_task(self, task_id: str) -> list[AssignmentHistory]:
        return self.find_by(AssignmentHistory, lambda h: h.task_id == task_id)

    # =========================================================================
    # Refresh token revocation
    # =========================================================================

    def revoke_token(self, jti: str, expires_at: datetime) -> None:
        """Remember a revoked refresh token until it would have expired anyway."""
        with self._lock:
            self._prune_revoked_tokens()
            self._revoked_tokens[jti] = expires_at

    def is_token_revoked(self, jti: str) -> bool:
        with self._lock:
            return jti in self._revoked_tokens

    def _prune_revoked_tokens(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [jti for jti, expires_at in self._revoked_tokens.items() if expires_at <= now]
        for jti in expired:
            del self._revoked_tokens[jti]


def get_store(request: Request) -> EntityStore:
    """Get the application's store for dependency injection."""
    return request.app.state.store


# Type alias for dependency injection
StoreDep = Annotated[EntityStore, Depends(get_store)]
