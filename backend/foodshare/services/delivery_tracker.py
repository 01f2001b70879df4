from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..models.claim import Claim
from ..models.delivery import Delivery
from ..models.enums import ClaimStatus, DeliveryStatus
from .errors import InvalidTransition, NotFound
from .timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)


class DeliveryTracker:
    """Forward-only delivery state machine: scheduled -> out_for_delivery -> delivered.

    Steps may be skipped (self-pickup goes straight from scheduled to delivered)
    but never reversed, and a delivered record is immutable.
    """

    def __init__(self, session, clock=utcnow):
        self.session = session
        self.clock = clock

    def get(self, delivery_id: int, for_update: bool = False) -> Delivery:
        if for_update:
            delivery = self.session.get(Delivery, delivery_id, with_for_update=True, populate_existing=True)
        else:
            delivery = self.session.get(Delivery, delivery_id)
        if delivery is None:
            raise NotFound(f"Delivery {delivery_id} not found", delivery_id=delivery_id)
        return delivery

    def for_claim(self, claim_id: int) -> Optional[Delivery]:
        return self.session.query(Delivery).filter(Delivery.claim_id == claim_id).populate_existing().first()

    def listing_id_for(self, delivery_id: int) -> int:
        row = self.session.query(Delivery.listing_id).filter(Delivery.id == delivery_id).first()
        if row is None:
            raise NotFound(f"Delivery {delivery_id} not found", delivery_id=delivery_id)
        return int(row[0])

    def start(self, claim: Claim, agent: str | None = None, eta: datetime | None = None) -> Delivery:
        existing = self.for_claim(claim.id)
        if existing is not None:
            return existing
        if claim.status != ClaimStatus.ACCEPTED:
            raise InvalidTransition(
                f"Claim {claim.id} is {claim.status}; deliveries start from accepted claims",
                claim_id=claim.id,
                status=claim.status,
            )
        delivery = Delivery(
            claim_id=claim.id,
            listing_id=claim.listing_id,
            status=DeliveryStatus.SCHEDULED,
            delivery_agent=agent,
            eta=as_utc(eta),
        )
        self.session.add(delivery)
        self.session.flush()
        logger.info("delivery %s scheduled for claim %s", delivery.id, claim.id)
        return delivery

    def update_position(self, delivery_id: int, lat: float, lng: float, eta: datetime | None = None) -> Delivery:
        delivery = self.get(delivery_id, for_update=True)
        if delivery.status != DeliveryStatus.OUT_FOR_DELIVERY:
            raise InvalidTransition(
                f"Delivery {delivery.id} is {delivery.status}; position updates need out_for_delivery",
                delivery_id=delivery.id,
                status=delivery.status,
            )
        delivery.current_lat = lat
        delivery.current_lng = lng
        if eta is not None:
            delivery.eta = as_utc(eta)
        self.session.flush()
        return delivery

    def advance(self, delivery_id: int, to: str) -> Delivery:
        delivery = self.get(delivery_id, for_update=True)
        if to not in DeliveryStatus.ORDER:
            raise InvalidTransition(f"Unknown delivery status {to!r}", delivery_id=delivery.id)
        current = delivery.status
        if current == DeliveryStatus.DELIVERED:
            raise InvalidTransition(
                f"Delivery {delivery.id} is already delivered",
                delivery_id=delivery.id,
                status=current,
            )
        if DeliveryStatus.ORDER[to] <= DeliveryStatus.ORDER[current]:
            raise InvalidTransition(
                f"Delivery {delivery.id} cannot move from {current} to {to}",
                delivery_id=delivery.id,
                status=current,
            )
        delivery.status = to
        if to == DeliveryStatus.DELIVERED:
            delivery.delivered_at = self.clock()
        self.session.flush()
        logger.info("delivery %s advanced %s -> %s", delivery.id, current, to)
        return delivery
