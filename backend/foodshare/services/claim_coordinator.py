"""Claim arbitration.

The coordinator owns claim status and the listing's available/claimed
transition. Callers run ``request_claim`` and ``decide`` inside the listing's
critical section (see ``LifecycleService``); rows are re-read with
``populate_existing`` so a caller that waited on the lock sees the winner's
committed state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from ..models.claim import Claim
from ..models.enums import ClaimStatus, ListingStatus
from .errors import InvalidTransition, ListingUnavailable, NotFound
from .listing_store import ListingStore
from .timeutil import as_utc

logger = logging.getLogger(__name__)


@dataclass
class Decision:
    claim: Claim
    # Sibling claims auto-rejected by an accept
    rejected: List[Claim] = field(default_factory=list)
    # False when an accept was repeated on an already accepted claim
    changed: bool = True


class ClaimCoordinator:
    def __init__(self, session, store: ListingStore, exclusive: bool = False):
        self.session = session
        self.store = store
        self.exclusive = exclusive

    def get(self, claim_id: int, for_update: bool = False) -> Claim:
        if for_update:
            claim = self.session.get(Claim, claim_id, with_for_update=True, populate_existing=True)
        else:
            claim = self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFound(f"Claim {claim_id} not found", claim_id=claim_id)
        return claim

    def listing_id_for(self, claim_id: int) -> int:
        row = self.session.query(Claim.listing_id).filter(Claim.id == claim_id).first()
        if row is None:
            raise NotFound(f"Claim {claim_id} not found", claim_id=claim_id)
        return int(row[0])

    def active_claims(self, listing_id: int) -> List[Claim]:
        return (
            self.session.query(Claim)
            .filter(Claim.listing_id == listing_id, Claim.status.in_(ClaimStatus.ACTIVE))
            .order_by(Claim.id)
            .populate_existing()
            .all()
        )

    def request_claim(
        self,
        listing_id: int,
        claimant_id: int,
        notes: str | None = None,
        pickup_time: datetime | None = None,
    ) -> Claim:
        listing = self.store.get(listing_id, for_update=True)
        if listing.status != ListingStatus.AVAILABLE:
            raise ListingUnavailable(
                f"Listing {listing_id} is {listing.status}",
                listing_id=listing_id,
                status=listing.status,
            )

        active = self.active_claims(listing_id)
        if any(c.status == ClaimStatus.ACCEPTED for c in active):
            raise ListingUnavailable(f"Listing {listing_id} already has an accepted claim", listing_id=listing_id)
        if any(int(c.claimant_user_id) == int(claimant_id) for c in active):
            raise ListingUnavailable(
                f"You already have an active claim on listing {listing_id}",
                listing_id=listing_id,
            )
        if self.exclusive and active:
            raise ListingUnavailable(f"Listing {listing_id} is reserved by another claim", listing_id=listing_id)

        claim = Claim(
            listing_id=listing_id,
            claimant_user_id=claimant_id,
            status=ClaimStatus.PENDING,
            notes=notes,
            pickup_time=as_utc(pickup_time),
        )
        self.session.add(claim)
        self.session.flush()
        logger.info("claim %s requested on listing %s by %s", claim.id, listing_id, claimant_id)
        return claim

    def decide(self, claim_id: int, accept: bool) -> Decision:
        # Row locks go listing first, then claims, the same order request_claim
        # and delivery updates use, so concurrent deciders queue on the listing.
        listing = self.store.get(self.listing_id_for(claim_id), for_update=True)
        claim = self.get(claim_id, for_update=True)
        if not accept:
            return Decision(claim=self._reject(claim))

        if claim.status == ClaimStatus.ACCEPTED and listing.status == ListingStatus.CLAIMED:
            return Decision(claim=claim, changed=False)
        # Checked before the claim's own state: a sibling that lost the race
        # (auto-rejected) reports the listing as gone rather than a bad transition.
        if listing.status != ListingStatus.AVAILABLE:
            raise ListingUnavailable(
                f"Listing {listing.id} is {listing.status}",
                listing_id=listing.id,
                claim_id=claim.id,
                status=listing.status,
            )
        if claim.status != ClaimStatus.PENDING:
            raise InvalidTransition(
                f"Claim {claim.id} is {claim.status}, expected pending",
                claim_id=claim.id,
                status=claim.status,
            )

        rejected = [c for c in self.active_claims(listing.id) if c.id != claim.id and c.status == ClaimStatus.PENDING]

        self.store.mark_claimed(listing)
        now = self.store.clock()
        claim.status = ClaimStatus.ACCEPTED
        claim.decided_at = now
        for sibling in rejected:
            sibling.status = ClaimStatus.REJECTED
            sibling.decided_at = now
        self.session.flush()
        logger.info(
            "claim %s accepted on listing %s; auto-rejected %s",
            claim.id,
            listing.id,
            [c.id for c in rejected],
        )
        return Decision(claim=claim, rejected=rejected)

    def _reject(self, claim: Claim) -> Claim:
        if claim.status != ClaimStatus.PENDING:
            raise InvalidTransition(
                f"Claim {claim.id} is {claim.status}, expected pending",
                claim_id=claim.id,
                status=claim.status,
            )
        claim.status = ClaimStatus.REJECTED
        claim.decided_at = self.store.clock()
        self.session.flush()
        logger.info("claim %s rejected", claim.id)
        return claim

    def complete(self, claim: Claim) -> Claim:
        if claim.status == ClaimStatus.COMPLETED:
            return claim
        if claim.status != ClaimStatus.ACCEPTED:
            raise InvalidTransition(
                f"Claim {claim.id} is {claim.status}, expected accepted",
                claim_id=claim.id,
                status=claim.status,
            )
        claim.status = ClaimStatus.COMPLETED
        claim.completed_at = self.store.clock()
        self.session.flush()
        return claim
