"""Tests for claim requests and decisions through the lifecycle service."""

import threading
from datetime import timedelta

import pytest

from foodshare.extensions import db
from foodshare.models.audit_log import AuditLog
from foodshare.models.claim import Claim
from foodshare.models.delivery import Delivery
from foodshare.models.enums import ClaimStatus, DeliveryStatus, ListingStatus
from foodshare.models.listing import Listing
from foodshare.services.claim_coordinator import ClaimCoordinator
from foodshare.services.errors import InvalidTransition, ListingUnavailable, NotFound
from foodshare.services.lifecycle import LifecycleService
from foodshare.services.listing_store import ListingStore


def test_request_claim_creates_pending_and_keeps_listing_available(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"], notes="Pickup at 5pm")

    assert claim.status == ClaimStatus.PENDING
    assert claim.notes == "Pickup at 5pm"
    assert service.get_listing(listing.id).status == ListingStatus.AVAILABLE


def test_request_claim_on_missing_listing(service, actors):
    with pytest.raises(NotFound):
        service.request_claim(4242, actors["ngo"])


def test_same_claimant_cannot_hold_two_active_claims(service, listing, actors):
    service.request_claim(listing.id, actors["ngo"])
    with pytest.raises(ListingUnavailable):
        service.request_claim(listing.id, actors["ngo"])


def test_first_accept_wins_allows_several_pending_claims(service, listing, actors):
    first = service.request_claim(listing.id, actors["ngo"])
    second = service.request_claim(listing.id, actors["recipient"])
    assert {first.status, second.status} == {ClaimStatus.PENDING}


def test_exclusive_mode_allows_one_active_claim(app, clock, listing, actors):
    service = LifecycleService(clock=clock, exclusive_claims=True, retry_hook=lambda _id: None)
    service.request_claim(listing.id, actors["ngo"])
    with pytest.raises(ListingUnavailable):
        service.request_claim(listing.id, actors["recipient"])


def test_accept_claims_listing_schedules_delivery_and_rejects_siblings(service, listing, actors):
    winner = service.request_claim(listing.id, actors["ngo"])
    loser = service.request_claim(listing.id, actors["recipient"])

    outcome = service.decide_claim(winner.id, True, actor_id=actors["donor"])

    assert outcome.claim.status == ClaimStatus.ACCEPTED
    assert outcome.delivery.status == DeliveryStatus.SCHEDULED
    assert [c.id for c in outcome.rejected] == [loser.id]
    assert db.session.get(Claim, loser.id).status == ClaimStatus.REJECTED
    assert service.get_listing(listing.id).status == ListingStatus.CLAIMED

    actions = {row.action for row in AuditLog.query.all()}
    assert actions == {"claim_decided", "claim_auto_rejected"}


def test_request_after_accept_is_refused(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"])
    service.decide_claim(claim.id, True)
    with pytest.raises(ListingUnavailable):
        service.request_claim(listing.id, actors["recipient"])


def test_reaccept_is_idempotent(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"])
    first = service.decide_claim(claim.id, True)
    again = service.decide_claim(claim.id, True)

    assert again.claim.status == ClaimStatus.ACCEPTED
    assert again.delivery.id == first.delivery.id
    assert Delivery.query.count() == 1
    assert AuditLog.query.filter_by(action="claim_decided").count() == 1


def test_accepting_auto_rejected_sibling_reports_listing_unavailable(service, listing, actors):
    first = service.request_claim(listing.id, actors["ngo"])
    second = service.request_claim(listing.id, actors["recipient"])
    service.decide_claim(first.id, True)

    with pytest.raises(ListingUnavailable):
        service.decide_claim(second.id, True)


def test_reject_leaves_listing_available(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"])
    outcome = service.decide_claim(claim.id, False)

    assert outcome.claim.status == ClaimStatus.REJECTED
    assert outcome.delivery is None
    assert service.get_listing(listing.id).status == ListingStatus.AVAILABLE
    # The listing can be claimed again
    assert service.request_claim(listing.id, actors["recipient"]).status == ClaimStatus.PENDING


def test_reject_requires_pending(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"])
    service.decide_claim(claim.id, False)
    with pytest.raises(InvalidTransition):
        service.decide_claim(claim.id, False)


def test_accept_rejected_claim_is_invalid_while_listing_available(service, listing, actors):
    claim = service.request_claim(listing.id, actors["ngo"])
    service.decide_claim(claim.id, False)
    with pytest.raises(InvalidTransition):
        service.decide_claim(claim.id, True)


def test_decide_missing_claim(service):
    with pytest.raises(NotFound):
        service.decide_claim(31337, True)


def test_expiry_preempts_pending_claim(service, listing, actors, clock):
    claim = service.request_claim(listing.id, actors["ngo"])
    clock.advance(hours=2)

    with pytest.raises(ListingUnavailable):
        service.decide_claim(claim.id, True)

    db.session.expire_all()
    assert db.session.get(Listing, listing.id).status == ListingStatus.EXPIRED
    assert db.session.get(Claim, claim.id).status == ClaimStatus.PENDING


def test_request_on_expired_listing(service, listing, actors, clock):
    clock.advance(hours=1, minutes=1)
    with pytest.raises(ListingUnavailable):
        service.request_claim(listing.id, actors["ngo"])


def test_concurrent_sibling_accepts_yield_one_winner(app, clock, actors):
    service = LifecycleService(clock=clock, retry_hook=lambda _id: None)
    listing = service.create_listing(
        actors["donor"], title="Rice", quantity=20, expires_at=clock() + timedelta(hours=3)
    )
    claim_ids = [
        service.request_claim(listing.id, actors["ngo"]).id,
        service.request_claim(listing.id, actors["recipient"]).id,
    ]
    listing_id = listing.id

    barrier = threading.Barrier(len(claim_ids))
    results = {}

    def accept(claim_id):
        with app.app_context():
            barrier.wait()
            try:
                results[claim_id] = service.decide_claim(claim_id, True).claim.status
            except ListingUnavailable as exc:
                results[claim_id] = exc

    threads = [threading.Thread(target=accept, args=(cid,)) for cid in claim_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    winners = [cid for cid, res in results.items() if res == ClaimStatus.ACCEPTED]
    losers = [cid for cid, res in results.items() if isinstance(res, ListingUnavailable)]
    assert len(winners) == 1
    assert len(losers) == 1

    db.session.expire_all()
    statuses = {c.id: c.status for c in Claim.query.filter_by(listing_id=listing_id)}
    assert statuses[winners[0]] == ClaimStatus.ACCEPTED
    assert statuses[losers[0]] == ClaimStatus.REJECTED
    assert db.session.get(Listing, listing_id).status == ListingStatus.CLAIMED
    assert Delivery.query.count() == 1


class _LockRecorder:
    """Session wrapper noting which rows are fetched FOR UPDATE, in order."""

    def __init__(self, session):
        self._session = session
        self.locked = []

    def get(self, model, ident, **kwargs):
        if kwargs.get("with_for_update"):
            self.locked.append((model.__name__, ident))
        return self._session.get(model, ident, **kwargs)

    def __getattr__(self, name):
        return getattr(self._session, name)


@pytest.mark.parametrize("accept", [True, False])
def test_decide_locks_listing_before_claim(service, listing, actors, clock, accept):
    claim = service.request_claim(listing.id, actors["ngo"])
    service.request_claim(listing.id, actors["recipient"])

    recorder = _LockRecorder(db.session)
    store = ListingStore(recorder, clock=clock)
    ClaimCoordinator(recorder, store).decide(claim.id, accept)

    assert recorder.locked[:2] == [("Listing", listing.id), ("Claim", claim.id)]
    db.session.rollback()
