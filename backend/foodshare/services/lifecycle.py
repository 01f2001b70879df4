"""Lifecycle orchestration: the single entry point for state-changing events.

Each public method is one unit of work committed on success and rolled back
on failure. Events touching a listing run inside that listing's critical
section (process lock plus row lock), so claim requests, decisions and
deliveries for one listing are serialised while different listings proceed in
parallel. Reputation effects run after the delivery commit and are retried
in the background if they fail; they never undo or fail the delivery.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..extensions import db
from ..models.audit_log import AuditLog
from ..models.claim import Claim
from ..models.delivery import Delivery
from ..models.enums import ClaimStatus, DeliveryStatus, ListingStatus
from ..models.listing import Listing
from ..models.reputation import ReputationEntry, Review
from .claim_coordinator import ClaimCoordinator
from .delivery_tracker import DeliveryTracker
from .errors import InvalidTransition, LifecycleError, PersistenceFailure
from .listing_store import ListingStore
from .locks import ListingLocks, listing_locks
from .reputation_ledger import ReputationLedger
from .timeutil import utcnow

logger = logging.getLogger(__name__)


def enqueue_reputation_retry(claim_id: int) -> None:
    from ..tasks.jobs.reputation import settle_claim_reputation

    try:
        settle_claim_reputation.delay(claim_id)
    except Exception:
        # Broker unavailable; the claim stays completed and can be settled by replaying the task.
        logger.exception("could not enqueue reputation settlement for claim %s", claim_id)


@dataclass
class ClaimOutcome:
    claim: Claim
    delivery: Optional[Delivery] = None
    rejected: List[Claim] = field(default_factory=list)


class LifecycleService:
    def __init__(
        self,
        session=None,
        clock: Callable = utcnow,
        exclusive_claims: bool = False,
        donor_points: int = 10,
        claimant_points: int = 5,
        review_points: int = 2,
        locks: ListingLocks = listing_locks,
        retry_hook: Callable[[int], None] = enqueue_reputation_retry,
    ):
        self.session = session if session is not None else db.session
        self.store = ListingStore(self.session, clock=clock)
        self.coordinator = ClaimCoordinator(self.session, self.store, exclusive=exclusive_claims)
        self.tracker = DeliveryTracker(self.session, clock=clock)
        self.ledger = ReputationLedger(self.session)
        self.donor_points = donor_points
        self.claimant_points = claimant_points
        self.review_points = review_points
        self.locks = locks
        self.retry_hook = retry_hook

    @classmethod
    def from_config(cls, config, **kwargs) -> "LifecycleService":
        kwargs.setdefault("clock", config.get("LIFECYCLE_CLOCK") or utcnow)
        kwargs.setdefault("exclusive_claims", bool(config.get("EXCLUSIVE_CLAIMS", False)))
        kwargs.setdefault("donor_points", int(config.get("DONOR_COMPLETION_POINTS", 10)))
        kwargs.setdefault("claimant_points", int(config.get("CLAIMANT_COMPLETION_POINTS", 5)))
        kwargs.setdefault("review_points", int(config.get("REVIEW_POINTS", 2)))
        return cls(**kwargs)

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.session.commit()
        except OperationalError as exc:
            self.session.rollback()
            raise PersistenceFailure("Storage temporarily unavailable, retry later") from exc
        except Exception:
            self.session.rollback()
            raise

    def _audit(self, action: str, entity_type: str, entity_id: int, actor_id: int | None, **details) -> None:
        self.session.add(
            AuditLog(
                actor_user_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=int(entity_id),
                details=details,
            )
        )

    def _settle_expiry(self, listing_id: int) -> Listing:
        # Committed on its own so an expiry found while rejecting a request still sticks
        with self._unit_of_work():
            return self.store.get(listing_id, for_update=True)

    # Listings

    def create_listing(self, donor_id: int, **fields) -> Listing:
        with self._unit_of_work():
            listing = self.store.create(donor_id, **fields)
        return listing

    def get_listing(self, listing_id: int) -> Listing:
        with self._unit_of_work():
            listing = self.store.get(listing_id)
        return listing

    def list_listings(
        self,
        status: str | None = None,
        donor_id: int | None = None,
        food_type: str | None = None,
        limit: int = 200,
    ) -> List[Listing]:
        with self._unit_of_work():
            rows = self.store.query(status=status, donor_id=donor_id, food_type=food_type, limit=limit)
        return rows

    # Claims

    def request_claim(
        self,
        listing_id: int,
        claimant_id: int,
        notes: str | None = None,
        pickup_time=None,
    ) -> Claim:
        with self.locks.hold(listing_id):
            self._settle_expiry(listing_id)
            with self._unit_of_work():
                claim = self.coordinator.request_claim(listing_id, claimant_id, notes=notes, pickup_time=pickup_time)
        return claim

    def decide_claim(
        self,
        claim_id: int,
        accept: bool,
        actor_id: int | None = None,
        delivery_agent: str | None = None,
        eta=None,
    ) -> ClaimOutcome:
        listing_id = self.coordinator.listing_id_for(claim_id)
        with self.locks.hold(listing_id):
            self._settle_expiry(listing_id)
            with self._unit_of_work():
                decision = self.coordinator.decide(claim_id, accept)
                claim = decision.claim
                delivery = None
                if claim.status == ClaimStatus.ACCEPTED:
                    delivery = self.tracker.start(claim, agent=delivery_agent, eta=eta)
                if decision.changed:
                    self._audit(
                        "claim_decided",
                        "claim",
                        claim.id,
                        actor_id,
                        toStatus=claim.status,
                        autoRejected=[c.id for c in decision.rejected],
                        deliveryId=delivery.id if delivery else None,
                    )
                    for sibling in decision.rejected:
                        self._audit("claim_auto_rejected", "claim", sibling.id, actor_id, acceptedClaimId=claim.id)
        return ClaimOutcome(claim=claim, delivery=delivery, rejected=decision.rejected)

    # Deliveries

    def update_delivery(
        self,
        delivery_id: int,
        status: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
        eta=None,
        actor_id: int | None = None,
    ) -> Delivery:
        """Advance and/or reposition a delivery.

        A status change is applied before a position so one call can set
        ``out_for_delivery`` together with the first coordinates.
        """
        listing_id = self.tracker.listing_id_for(delivery_id)
        completed_claim_id = None
        with self.locks.hold(listing_id):
            self._settle_expiry(listing_id)
            with self._unit_of_work():
                listing = self.store.get(listing_id, for_update=True)
                delivery = self.tracker.get(delivery_id, for_update=True)
                if status:
                    if listing.status == ListingStatus.EXPIRED:
                        raise InvalidTransition(
                            f"Listing {listing_id} expired before delivery completed",
                            listing_id=listing_id,
                            delivery_id=delivery_id,
                        )
                    previous = delivery.status
                    delivery = self.tracker.advance(delivery_id, status)
                    if delivery.status == DeliveryStatus.DELIVERED:
                        self.store.mark_delivered(listing)
                        claim = self.coordinator.complete(delivery.claim)
                        completed_claim_id = claim.id
                    self._audit(
                        "delivery_advanced",
                        "delivery",
                        delivery.id,
                        actor_id,
                        fromStatus=previous,
                        toStatus=delivery.status,
                    )
                if lat is not None and lng is not None:
                    delivery = self.tracker.update_position(delivery_id, lat, lng, eta=eta)

        if completed_claim_id is not None:
            self._settle_reputation_best_effort(completed_claim_id)
        return delivery

    # Reputation

    def settle_reputation(self, claim_id: int) -> List[ReputationEntry]:
        with self._unit_of_work():
            claim = self.coordinator.get(claim_id)
            entries = self.ledger.award_completion(claim, self.donor_points, self.claimant_points)
        return entries

    def _settle_reputation_best_effort(self, claim_id: int) -> None:
        try:
            self.settle_reputation(claim_id)
        except (LifecycleError, SQLAlchemyError) as exc:
            logger.warning("reputation settlement for claim %s failed (%s); queued for retry", claim_id, exc)
            self.retry_hook(claim_id)

    def record_review(
        self,
        claim_id: int,
        reviewer_id: int,
        reviewee_id: int,
        rating,
        comment: str | None = None,
    ) -> Review:
        with self._unit_of_work():
            review = self.ledger.record_review(
                claim_id,
                reviewer_id,
                reviewee_id,
                rating,
                comment=comment,
                review_points=self.review_points,
            )
        return review

    def reputation(self, user_id: int) -> dict:
        return {
            "userId": user_id,
            "points": self.ledger.total_points(user_id),
            "reviews": self.ledger.review_summary(user_id),
            "entries": self.ledger.entries(user_id),
        }
