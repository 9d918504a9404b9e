"""
Error taxonomy shared by the OAuth flow, the export poller and the routes.

Every error carries the HTTP status it maps to so the application boundary can
render all of them with the same ``{"success": false, "error": ...}`` shape.
"""

from __future__ import annotations

from http import HTTPStatus


class GatewayError(Exception):
    """Base class for failures surfaced to the browser client."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthError(GatewayError):
    """The caller did not present a usable session credential."""

    status_code = HTTPStatus.UNAUTHORIZED


class MissingCredential(AuthError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class InvalidCredential(AuthError):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class ExpiredCredential(AuthError):
    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)


class MalformedCredential(AuthError):
    def __init__(self, message: str = "Malformed token") -> None:
        super().__init__(message)


class AccessDenied(GatewayError):
    """The user declined the OAuth grant."""

    status_code = HTTPStatus.FORBIDDEN

    def __init__(self, message: str = "Access denied by user.") -> None:
        super().__init__(message)


class ValidationError(GatewayError):
    """A request is missing identifiers required to address a document."""

    status_code = HTTPStatus.BAD_REQUEST


class UpstreamError(GatewayError):
    """The document API answered with a non-success status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message, status_code=status_code)


class JobFailed(GatewayError):
    """A translation job ended in failure or could not be started."""


class JobTimedOut(GatewayError):
    """The polling budget ran out before the job reached a terminal phase."""


__all__ = [
    "AccessDenied",
    "AuthError",
    "ExpiredCredential",
    "GatewayError",
    "InvalidCredential",
    "JobFailed",
    "JobTimedOut",
    "MalformedCredential",
    "MissingCredential",
    "UpstreamError",
    "ValidationError",
]
