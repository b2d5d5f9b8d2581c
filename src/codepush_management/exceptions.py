"""
Exception classes for codepush-management-client.

Every error carries a human readable ``message`` and the numeric
``status_code`` the backend would have used for the same condition, so
callers can handle locally raised validation errors and backend errors
the same way.
"""

from typing import Optional

ERROR_UNAUTHORIZED = 401
ERROR_NOT_FOUND = 404
ERROR_CONFLICT = 409  # Used if the resource already exists
ERROR_INTERNAL_SERVER = 500
ERROR_GATEWAY_TIMEOUT = 504  # Used if there is a network error


class CodePushError(Exception):
    """Base exception class for CodePush management errors."""

    default_status_code = ERROR_GATEWAY_TIMEOUT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )

    def __str__(self) -> str:
        return self.message


class UnauthorizedError(CodePushError):
    """Raised when credentials are missing or rejected."""

    default_status_code = ERROR_UNAUTHORIZED


class NotFoundError(CodePushError):
    """Raised when requested resource is not found."""

    default_status_code = ERROR_NOT_FOUND


class ConflictError(CodePushError):
    """Raised when validation fails or the resource already exists."""

    default_status_code = ERROR_CONFLICT


class ServerError(CodePushError):
    """Raised when server returns 5xx error or an unreadable body."""

    default_status_code = ERROR_INTERNAL_SERVER


class GatewayTimeoutError(CodePushError):
    """Raised when the server could not be reached at all."""

    default_status_code = ERROR_GATEWAY_TIMEOUT


_ERRORS_BY_STATUS = {
    ERROR_UNAUTHORIZED: UnauthorizedError,
    ERROR_NOT_FOUND: NotFoundError,
    ERROR_CONFLICT: ConflictError,
    ERROR_INTERNAL_SERVER: ServerError,
    ERROR_GATEWAY_TIMEOUT: GatewayTimeoutError,
}


def error_for_status(status_code: Optional[int], message: str) -> CodePushError:
    """Build the exception matching an HTTP status code."""
    if not status_code:
        return GatewayTimeoutError(message)
    error_class = _ERRORS_BY_STATUS.get(status_code, CodePushError)
    return error_class(message, status_code)
