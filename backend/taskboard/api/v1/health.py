"""Health check endpoints."""

from fastapi import APIRouter

from taskboard.config import get_settings
from taskboard.models import Task, Team, User
from taskboard.store import StoreDep

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(store: StoreDep) -> dict[str, str | dict[str, int]]:
    """Readiness check reporting the in-memory store's size."""
    return {
        "status": "healthy",
        "store": {
            "users": store.count(User),
            "teams": store.count(Team),
            "tasks": store.count(Task),
        },
    }
