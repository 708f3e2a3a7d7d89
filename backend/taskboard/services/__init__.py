"""Domain services."""

from taskboard.services.auth import AuthService, SessionResult
from taskboard.services.tasks import TaskService
from taskboard.services.teams import TeamService
from taskboard.services.users import UserService

__all__ = [
    "AuthService",
    "SessionResult",
    "TaskService",
    "TeamService",
    "UserService",
]
