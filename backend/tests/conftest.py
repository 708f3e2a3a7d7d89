"""
Shared pytest fixtures for Taskboard tests.

Provides:
- A fresh in-memory store per test
- Service instances wired to that store
- Users/identities and a team with an admin and a plain member
- An HTTP client over an isolated app instance
"""

import os

# Cheap bcrypt for tests; must be set before settings are first read
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient

from taskboard.main import create_app
from taskboard.models import TeamRole, User
from taskboard.security import Identity, PasswordHasher, TokenCodec
from taskboard.services import AuthService, TaskService, TeamService, UserService
from taskboard.store import EntityStore


# ============================================================================
# Store and services
# ============================================================================

@pytest.fixture
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenCodec:
    return TokenCodec(access_secret="test-access-secret", refresh_secret="test-refresh-secret")


@pytest.fixture
def auth_service(store, hasher, tokens) -> AuthService:
    return AuthService(store, hasher, tokens)


@pytest.fixture
def team_service(store) -> TeamService:
    return TeamService(store)


@pytest.fixture
def task_service(store) -> TaskService:
    return TaskService(store)


@pytest.fixture
def user_service(store) -> UserService:
    return UserService(store)


# ============================================================================
# Users and teams
# ============================================================================

def make_user(store: EntityStore, email: str, name: str | None = None) -> Identity:
    """Insert a user directly and return its caller identity."""
    user = store.insert(User(email=email, password_hash="not-a-real-hash", name=name))
    return Identity(user_id=user.id, email=user.email)


@pytest.fixture
def alice(store) -> Identity:
    return make_user(store, "alice@example.com", "Alice")


@pytest.fixture
def bob(store) -> Identity:
    return make_user(store, "bob@example.com", "Bob")


@pytest.fixture
def carol(store) -> Identity:
    return make_user(store, "carol@example.com", "Carol")


@pytest.fixture
def team(team_service, alice, bob):
    """Team "Eng" with alice as ADMIN and bob as USER."""
    team = team_service.create_team(alice, "Eng")
    team_service.add_member(alice, bob.user_id, team.id, TeamRole.USER)
    return team


@pytest.fixture
def task(task_service, team, alice):
    return task_service.create_task(alice, team.id, "Fix bug", "Crash on save")


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
def client():
    """Client over an app with its own empty store."""
    app = create_app(store=EntityStore())
    with TestClient(app) as test_client:
        yield test_client
