"""Credential hashing and JWT token codec.

Access and refresh tokens are signed with separate secrets, so one can never
be replayed as the other. Both carry the same identity payload
(``sub`` = user id, ``email``); refresh tokens also carry a ``jti`` so a
rotated token can be revoked.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from taskboard.config import Settings


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as carried in a token payload."""

    user_id: str
    email: str


@dataclass(frozen=True)
class RefreshClaims:
    """Verified refresh token contents."""

    identity: Identity
    jti: str
    expires_at: datetime


class PasswordHasher:
    """bcrypt password hashing via passlib."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a password against its hash. Malformed hashes never match."""
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            return False


class TokenCodec:
    """Signs and verifies access/refresh JWTs."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            access_secret=settings.jwt_access_secret.get_secret_value(),
            refresh_secret=settings.jwt_refresh_secret.get_secret_value(),
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.jwt_refresh_token_expire_days),
        )

    def _encode(self, identity: Identity, token_type: str, secret: str, ttl: timedelta, **extra) -> str:
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": identity.user_id,
            "email": identity.email,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            **extra,
        }
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> dict | None:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type") != token_type:
            return None
        if not isinstance(payload.get("sub"), str) or not isinstance(payload.get("email"), str):
            return None
        return payload

    def sign_access(self, identity: Identity) -> str:
        return self._encode(identity, "access", self.access_secret, self.access_ttl)

    def sign_refresh(self, identity: Identity) -> str:
        return self._encode(
            identity,
            "refresh",
            self.refresh_secret,
            self.refresh_ttl,
            jti=uuid.uuid4().hex,
        )

    def verify_access(self, token: str) -> Identity | None:
        payload = self._decode(token, "access", self.access_secret)
        if payload is None:
            return None
        return Identity(user_id=payload["sub"], email=payload["email"])

    def verify_refresh(self, token: str) -> RefreshClaims | None:
        payload = self._decode(token, "refresh", self.refresh_secret)
        if payload is None or not isinstance(payload.get("jti"), str):
            return None
        return RefreshClaims(
            identity=Identity(user_id=payload["sub"], email=payload["email"]),
            jti=payload["jti"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
