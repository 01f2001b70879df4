"""Listing persistence and availability state.

Expiry is resolved lazily: every read compares ``expires_at`` with the clock
and, when a still-open listing is past its expiry, records the transition to
``expired`` before returning it. The write is a conditional UPDATE on the
row's stored status, so a reader holding a stale copy never overwrites a
terminal state committed meanwhile.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy import and_, or_, update

from ..models.enums import ListingStatus
from ..models.listing import Listing
from .errors import InvalidTransition, NotFound
from .timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)


def _labels(values) -> List[str]:
    """Trimmed, de-duplicated labels in their given order."""
    seen: List[str] = []
    for value in values or ():
        label = str(value).strip()
        if label and label not in seen:
            seen.append(label)
    return seen


class ListingStore:
    def __init__(self, session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def create(
        self,
        donor_id: int,
        title: str,
        quantity: int,
        expires_at: datetime,
        unit: str = "portions",
        description: str | None = None,
        location: str | None = None,
        food_type: str | None = None,
        dietary_restrictions: str | None = None,
        categories: List[str] | None = None,
        allergens: List[str] | None = None,
    ) -> Listing:
        listing = Listing(
            donor_user_id=donor_id,
            title=title,
            quantity=quantity,
            unit=unit or "portions",
            description=description,
            location=location,
            food_type=food_type,
            dietary_restrictions=dietary_restrictions,
            categories=_labels(categories),
            allergens=_labels(allergens),
            status=ListingStatus.AVAILABLE,
            expires_at=as_utc(expires_at),
        )
        self.session.add(listing)
        self.session.flush()
        logger.info("listing %s created by donor %s (qty=%s)", listing.id, donor_id, quantity)
        return listing

    def get(self, listing_id: int, for_update: bool = False) -> Listing:
        """Return the listing with expiry applied.

        ``for_update`` takes a row lock and refreshes any copy already loaded in
        the session, for use inside a per-listing critical section.
        """
        if for_update:
            listing = self.session.get(Listing, listing_id, with_for_update=True, populate_existing=True)
        else:
            listing = self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
        self._apply_expiry(listing)
        return listing

    def query(
        self,
        status: str | None = None,
        donor_id: int | None = None,
        food_type: str | None = None,
        limit: int = 200,
    ) -> List[Listing]:
        """Newest listings first, filtered by their status as of now.

        Status is matched in SQL against the effective state (open rows past
        ``expires_at`` count as expired), so the limit applies to matching rows.
        """
        q = self.session.query(Listing)
        if donor_id is not None:
            q = q.filter(Listing.donor_user_id == donor_id)
        if food_type:
            q = q.filter(Listing.food_type == food_type)
        if status:
            now = self.clock()
            if status in ListingStatus.EXPIRABLE:
                q = q.filter(Listing.status == status, Listing.expires_at >= now)
            elif status == ListingStatus.EXPIRED:
                q = q.filter(
                    or_(
                        Listing.status == ListingStatus.EXPIRED,
                        and_(Listing.status.in_(ListingStatus.EXPIRABLE), Listing.expires_at < now),
                    )
                )
            else:
                q = q.filter(Listing.status == status)
        rows = q.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit).all()
        for listing in rows:
            self._apply_expiry(listing)
        return rows

    def is_expired(self, listing: Listing) -> bool:
        return listing.status in ListingStatus.EXPIRABLE and self.clock() > as_utc(listing.expires_at)

    def _apply_expiry(self, listing: Listing) -> None:
        if not self.is_expired(listing):
            return
        previous = listing.status
        result = self.session.execute(
            update(Listing)
            .where(Listing.id == listing.id, Listing.status.in_(ListingStatus.EXPIRABLE))
            .values(status=ListingStatus.EXPIRED, expired_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        # Picks up either our write or whatever state another transaction committed
        self.session.refresh(listing)
        if result.rowcount:
            logger.info("listing %s expired (was %s)", listing.id, previous)

    def mark_claimed(self, listing: Listing) -> Listing:
        if listing.status != ListingStatus.AVAILABLE:
            raise InvalidTransition(
                f"Listing {listing.id} is {listing.status}, expected available",
                listing_id=listing.id,
                status=listing.status,
            )
        listing.status = ListingStatus.CLAIMED
        listing.claimed_at = self.clock()
        self.session.flush()
        return listing

    def mark_expired(self, listing: Listing) -> Listing:
        if listing.status == ListingStatus.EXPIRED:
            return listing
        if listing.status not in ListingStatus.EXPIRABLE:
            raise InvalidTransition(
                f"Listing {listing.id} is {listing.status} and can no longer expire",
                listing_id=listing.id,
                status=listing.status,
            )
        listing.status = ListingStatus.EXPIRED
        listing.expired_at = self.clock()
        self.session.flush()
        return listing

    def mark_delivered(self, listing: Listing) -> Listing:
        # Delivered is terminal; repeating it is a no-op
        if listing.status == ListingStatus.DELIVERED:
            return listing
        if listing.status != ListingStatus.CLAIMED:
            raise InvalidTransition(
                f"Listing {listing.id} is {listing.status}, expected claimed",
                listing_id=listing.id,
                status=listing.status,
            )
        listing.status = ListingStatus.DELIVERED
        listing.delivered_at = self.clock()
        self.session.flush()
        return listing

