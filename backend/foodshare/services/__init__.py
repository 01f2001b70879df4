from .errors import (
    DuplicateReview,
    InvalidRating,
    InvalidTransition,
    LifecycleError,
    ListingUnavailable,
    NotEligible,
    NotFound,
    PersistenceFailure,
)
from .lifecycle import ClaimOutcome, LifecycleService

__all__ = [
    "ClaimOutcome",
    "DuplicateReview",
    "InvalidRating",
    "InvalidTransition",
    "LifecycleError",
    "LifecycleService",
    "ListingUnavailable",
    "NotEligible",
    "NotFound",
    "PersistenceFailure",
]
