"""Exception handlers translating domain errors into JSON responses.

Every error response has the same shape::

    {"error": {"code": "NOT_FOUND", "message": "Task not found.", "status": 404}}

Unexpected exceptions are logged with their traceback and masked as
INTERNAL_ERROR unless debug is on.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskboard.config import Settings
from taskboard.errors import AppError, InternalError, ValidationError

logger = structlog.get_logger()


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "status": status_code}},
    )


def format_validation_issues(exc: RequestValidationError) -> str:
    """Join pydantic issue messages into one sentence-per-issue string."""
    messages = []
    for issue in exc.errors():
        message = str(issue.get("msg", "Invalid value."))
        # pydantic prefixes custom validator messages
        message = message.removeprefix("Value error, ")
        field = ".".join(str(part) for part in issue.get("loc", ()) if part != "body")
        text = f"{field}: {message}" if field else message
        messages.append(text if text.endswith(".") else f"{text}.")
    return " ".join(messages) or ValidationError.default_message


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the application's exception handlers on ``app``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error("internal_error", error=exc.message, path=request.url.path)
        else:
            logger.warning(
                "app_error",
                code=exc.code,
                error=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )
        return error_response(exc.code, exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = format_validation_issues(exc)
        logger.warning("request_validation_failed", error=message, path=request.url.path)
        return error_response(ValidationError.code, message, ValidationError.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        message = str(exc) if settings.debug and str(exc) else InternalError.default_message
        return error_response(InternalError.code, message, InternalError.status_code)
