"""Domain exceptions.

Every failure the services raise on purpose is an ``AppError`` carrying a
stable error code and the HTTP status the API layer answers with. The
exception handlers in ``taskboard.middleware.errors`` render them.
"""


class AppError(Exception):
    """Base exception for intentional application errors."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} message={self.message!r}>"


class ValidationError(AppError):
    """Input violates a field-level or cross-entity constraint."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input."


class InvalidCredentials(AppError):
    """Login failed.

    The message is the same whether the email is unknown or the password is
    wrong, so callers cannot probe which accounts exist.
    """

    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid email or password."


class EmailAlreadyExists(AppError):
    """Another user already holds this email."""

    code = "EMAIL_ALREADY_EXISTS"
    status_code = 409
    default_message = "A user with this email already exists."


class Unauthenticated(AppError):
    """No caller identity was supplied."""

    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "You must be logged in to perform this action."


class Unauthorized(AppError):
    """The caller is known but lacks permission."""

    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFound(AppError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found.")


class RefreshTokenExpired(AppError):
    """Refresh token missing, invalid, revoked or orphaned."""

    code = "REFRESH_TOKEN_EXPIRED"
    status_code = 401
    default_message = "Your session has expired. Please log in again."


class InternalError(AppError):
    """Impossible state, e.g. a corrupted store. Never raised on purpose by callers."""
