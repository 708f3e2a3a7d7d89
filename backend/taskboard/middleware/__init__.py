"""Middleware package."""

from taskboard.middleware.errors import register_error_handlers
from taskboard.middleware.logging import LoggingMiddleware
from taskboard.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware", "register_error_handlers"]
