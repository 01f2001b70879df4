"""Reward points and reviews.

Points are an append-only ledger: an award is a new ``ReputationEntry`` row and
a user's total is the sum of their rows. Awards that may be replayed (retried
settlement jobs) carry an idempotency key; a second award under the same key
returns the first entry unchanged.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..models.claim import Claim
from ..models.delivery import Delivery
from ..models.enums import ClaimStatus, DeliveryStatus
from ..models.reputation import ReputationEntry, Review
from .errors import DuplicateReview, InvalidRating, NotEligible, NotFound

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class ReputationLedger:
    def __init__(self, session):
        self.session = session

    def award_points(
        self,
        user_id: int,
        delta: int,
        reason: str,
        claim_id: int | None = None,
        idempotency_key: str | None = None,
    ) -> ReputationEntry:
        if idempotency_key:
            existing = (
                self.session.query(ReputationEntry)
                .filter(ReputationEntry.idempotency_key == idempotency_key)
                .first()
            )
            if existing is not None:
                logger.debug("award %s already applied (entry %s)", idempotency_key, existing.id)
                return existing
        entry = ReputationEntry(
            user_id=user_id,
            points=int(delta),
            reason=reason,
            claim_id=claim_id,
            idempotency_key=idempotency_key,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info("awarded %s points to user %s (%s)", delta, user_id, reason)
        return entry

    def award_completion(self, claim: Claim, donor_points: int, claimant_points: int) -> List[ReputationEntry]:
        """Grant the completion awards for a delivered claim to both parties."""
        if claim.status != ClaimStatus.COMPLETED:
            raise NotEligible(
                f"Claim {claim.id} is {claim.status}; points are awarded on completion",
                claim_id=claim.id,
            )
        donor_id = claim.listing.donor_user_id
        return [
            self.award_points(
                donor_id,
                donor_points,
                "donation_completed",
                claim_id=claim.id,
                idempotency_key=f"claim:{claim.id}:donor",
            ),
            self.award_points(
                claim.claimant_user_id,
                claimant_points,
                "claim_completed",
                claim_id=claim.id,
                idempotency_key=f"claim:{claim.id}:claimant",
            ),
        ]

    def total_points(self, user_id: int) -> int:
        total = (
            self.session.query(func.coalesce(func.sum(ReputationEntry.points), 0))
            .filter(ReputationEntry.user_id == user_id)
            .scalar()
        )
        return int(total or 0)

    def entries(self, user_id: int, limit: int = 50) -> List[ReputationEntry]:
        return (
            self.session.query(ReputationEntry)
            .filter(ReputationEntry.user_id == user_id)
            .order_by(ReputationEntry.created_at.desc(), ReputationEntry.id.desc())
            .limit(limit)
            .all()
        )

    def review_summary(self, user_id: int) -> dict:
        count, average = (
            self.session.query(func.count(Review.id), func.avg(Review.rating))
            .filter(Review.reviewee_user_id == user_id)
            .one()
        )
        return {
            "count": int(count or 0),
            "average": round(float(average), 2) if average is not None else None,
        }

    def record_review(
        self,
        claim_id: int,
        reviewer_id: int,
        reviewee_id: int,
        rating,
        comment: str | None = None,
        review_points: int = 0,
    ) -> Review:
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRating(f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}", rating=rating)

        claim = self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFound(f"Claim {claim_id} not found", claim_id=claim_id)
        delivery = self.session.query(Delivery).filter(Delivery.claim_id == claim_id).first()
        if delivery is None or delivery.status != DeliveryStatus.DELIVERED:
            raise NotEligible(
                f"Claim {claim_id} has not been delivered yet",
                claim_id=claim_id,
            )

        existing = (
            self.session.query(Review.id)
            .filter(Review.claim_id == claim_id, Review.reviewer_user_id == reviewer_id)
            .first()
        )
        if existing is not None:
            raise DuplicateReview(
                f"User {reviewer_id} already reviewed claim {claim_id}",
                claim_id=claim_id,
                review_id=int(existing[0]),
            )

        review = Review(
            claim_id=claim_id,
            reviewer_user_id=reviewer_id,
            reviewee_user_id=reviewee_id,
            rating=rating,
            comment=comment,
        )
        self.session.add(review)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent review by the same reviewer
            raise DuplicateReview(
                f"User {reviewer_id} already reviewed claim {claim_id}",
                claim_id=claim_id,
            ) from exc

        if review_points:
            self.award_points(
                reviewer_id,
                review_points,
                "review_submitted",
                claim_id=claim_id,
                idempotency_key=f"review:{review.id}",
            )
        logger.info("review %s recorded for claim %s by %s (rating=%s)", review.id, claim_id, reviewer_id, rating)
        return review
