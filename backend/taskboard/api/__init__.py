"""API router package."""

from fastapi import APIRouter

from taskboard.api.v1 import auth, health, members, tasks, teams, users

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(members.router, prefix="/members", tags=["Team Members"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
