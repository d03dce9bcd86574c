"""
Error taxonomy shared by the service layer and the HTTP surface.

Services raise subclasses of ``ServiceError``; ``main.create_app``
registers a handler that renders them as ``{"error": kind, "detail":
message}`` with the matching status code.  ``kind`` is the stable,
machine‑checkable part of the payload; ``detail`` is meant for humans
and must never contain tokens, keys or another user's identifiers.
"""

from typing import Optional


class ServiceError(Exception):
    """Base service exception."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, *, kind: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(ServiceError):
    """Malformed or missing input (-> HTTP 400)."""

    kind = "validation_error"
    status_code = 400


class UnauthenticatedError(ServiceError):
    """Missing, invalid or expired credential (-> HTTP 401)."""

    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(ServiceError):
    """Authenticated but not allowed to touch the resource (-> HTTP 403)."""

    kind = "forbidden"
    status_code = 403


class NotFoundError(ServiceError):
    """Resource not found (-> HTTP 404)."""

    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    """State precondition violated (-> HTTP 409)."""

    kind = "conflict"
    status_code = 409


class UnavailableError(ServiceError):
    """A downstream dependency failed or timed out; safe to retry (-> HTTP 503)."""

    kind = "unavailable"
    status_code = 503


class FatalError(ServiceError):
    """A multi‑step write stopped half way and needs operator attention (-> HTTP 500)."""

    kind = "fatal"
    status_code = 500
