from typing import Any, Optional


class AppError(Exception):
    """Base for every failure that is reported to API callers.

    Subclasses fix the HTTP status; ``context`` carries structured detail that
    is logged server-side and never echoed back in the response body.
    """

    status_code = 500

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class InternalError(AppError):
    status_code = 500
