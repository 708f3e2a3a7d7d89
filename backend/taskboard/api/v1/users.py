"""User endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator

from taskboard.api.v1.auth import Caller, MessageResponse, UserResponse
from taskboard.services.users import UserService
from taskboard.store import StoreDep

router = APIRouter()


class UserUpdate(BaseModel):
    """Profile update request. Omitted fields stay unchanged."""

    email: EmailStr | None = None
    name: str | None = Field(None, min_length=1, max_length=100)

    @field_validator("email", "name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


def get_user_service(store: StoreDep) -> UserService:
    return UserService(store)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


@router.get("", response_model=list[UserResponse])
async def list_users(caller: Caller, service: UserServiceDep, store: StoreDep) -> list[UserResponse]:
    with store.atomic():
        return [UserResponse.model_validate(user) for user in service.list_users(caller)]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, caller: Caller, service: UserServiceDep, store: StoreDep) -> UserResponse:
    with store.atomic():
        return UserResponse.model_validate(service.get_user(caller, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    caller: Caller,
    service: UserServiceDep,
    store: StoreDep,
) -> UserResponse:
    """Update your own profile."""
    with store.atomic():
        user = service.update_user(caller, user_id, email=body.email, name=body.name)
        return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: str, caller: Caller, service: UserServiceDep) -> MessageResponse:
    """Delete your own account."""
    service.delete_user(caller, user_id)
    return MessageResponse(success=True, message="User deleted successfully.")
