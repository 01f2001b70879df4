"""Typed lifecycle errors.

Every error carries a stable ``code`` and the HTTP status the API layer maps it
to, so the boundary never has to inspect message strings.
"""

from __future__ import annotations


class LifecycleError(Exception):
    code = "LifecycleError"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(LifecycleError):
    code = "NotFound"
    status_code = 404


class InvalidTransition(LifecycleError):
    """The entity is not in a state the requested transition can start from."""

    code = "InvalidTransition"
    status_code = 409


class ListingUnavailable(LifecycleError):
    """The listing cannot be claimed any more (taken, expired or delivered)."""

    code = "ListingUnavailable"
    status_code = 409


class NotEligible(LifecycleError):
    """Reviews and completion points need a delivered transaction."""

    code = "NotEligible"
    status_code = 409


class DuplicateReview(LifecycleError):
    code = "DuplicateReview"
    status_code = 409


class InvalidRating(LifecycleError):
    code = "InvalidRating"
    status_code = 422


class PersistenceFailure(LifecycleError):
    """Transient storage failure. Callers retry with backoff."""

    code = "PersistenceFailure"
    status_code = 503
