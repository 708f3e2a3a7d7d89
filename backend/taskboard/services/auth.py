"""Authentication session service: registration, login and token refresh."""

from dataclasses import dataclass

import structlog

from taskboard.errors import EmailAlreadyExists, InvalidCredentials, RefreshTokenExpired
from taskboard.models import User
from taskboard.security import Identity, PasswordHasher, TokenCodec
from taskboard.store import EntityStore

logger = structlog.get_logger()


@dataclass
class SessionResult:
    """Fresh token pair plus the user it was issued for."""

    access_token: str
    refresh_token: str
    user: User


class AuthService:
    """Issues and validates caller identities.

    Password hashing and token signing run outside the store lock; they
    finish (or fail) before any user record is written.
    """

    def __init__(self, store: EntityStore, hasher: PasswordHasher, tokens: TokenCodec):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    def _issue(self, user: User) -> SessionResult:
        identity = Identity(user_id=user.id, email=user.email)
        return SessionResult(
            access_token=self.tokens.sign_access(identity),
            refresh_token=self.tokens.sign_refresh(identity),
            user=user,
        )

    def register(self, email: str, password: str, name: str | None = None) -> SessionResult:
        """Create an account and open a session for it."""
        if self.store.find_user_by_email(email) is not None:
            logger.warning("registration_failed_email_exists", email=email)
            raise EmailAlreadyExists()

        password_hash = self.hasher.hash(password)

        with self.store.atomic():
            # Re-check: another registration may have landed while hashing
            if self.store.find_user_by_email(email) is not None:
                logger.warning("registration_failed_email_exists", email=email)
                raise EmailAlreadyExists()
            user = self.store.insert(User(email=email, password_hash=password_hash, name=name))

        logger.info("user_registered", user_id=user.id, email=email)
        return self._issue(user)

    def login(self, email: str, password: str) -> SessionResult:
        """Open a session for valid credentials."""
        user = self.store.find_user_by_email(email)
        if user is None:
            logger.warning("login_failed_unknown_email", email=email)
            raise InvalidCredentials()

        if not self.hasher.verify(password, user.password_hash):
            logger.warning("login_failed_wrong_password", email=email)
            raise InvalidCredentials()

        logger.info("user_logged_in", user_id=user.id)
        return self._issue(user)

    def refresh(self, token: str | None) -> SessionResult:
        """Exchange a refresh token for a new pair, revoking the old token."""
        if not token:
            logger.warning("refresh_failed_no_token")
            raise RefreshTokenExpired()

        claims = self.tokens.verify_refresh(token)
        if claims is None:
            logger.warning("refresh_failed_invalid_token")
            raise RefreshTokenExpired()

        with self.store.atomic():
            if self.store.is_token_revoked(claims.jti):
                logger.warning("refresh_failed_token_reused", user_id=claims.identity.user_id)
                raise RefreshTokenExpired()

            user = self.store.get(User, claims.identity.user_id)
            if user is None:
                logger.warning("refresh_failed_user_not_found", user_id=claims.identity.user_id)
                raise RefreshTokenExpired()

            self.store.revoke_token(claims.jti, claims.expires_at)

        logger.info("token_refreshed", user_id=user.id)
        return self._issue(user)

    def logout(self, token: str | None) -> None:
        """Revoke a refresh token. Unknown or invalid tokens are ignored."""
        if not token:
            return
        claims = self.tokens.verify_refresh(token)
        if claims is None:
            return
        self.store.revoke_token(claims.jti, claims.expires_at)
        logger.info("user_logged_out", user_id=claims.identity.user_id)

    def get_me(self, caller: Identity | None) -> User | None:
        """The caller's user record, or None when anonymous or deleted."""
        if caller is None:
            return None
        return self.store.get(User, caller.user_id)
