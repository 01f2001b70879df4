"""Tests for ListingStore: creation, forward-only transitions and lazy expiry."""

from datetime import timedelta

import pytest
from sqlalchemy import update

from foodshare.extensions import db
from foodshare.models.enums import ListingStatus
from foodshare.models.listing import Listing
from foodshare.services.errors import InvalidTransition, NotFound
from foodshare.services.listing_store import ListingStore


@pytest.fixture
def store(app, clock):
    return ListingStore(db.session, clock=clock)


def _create(store, actors, clock, hours=1):
    return store.create(
        actors["donor"],
        title="Bread",
        quantity=12,
        expires_at=clock() + timedelta(hours=hours),
    )


def test_create_starts_available(store, actors, clock):
    listing = _create(store, actors, clock)
    assert listing.id is not None
    assert listing.status == ListingStatus.AVAILABLE
    assert listing.unit == "portions"


def test_get_missing_listing_raises_not_found(store):
    with pytest.raises(NotFound):
        store.get(9999)


def test_expiry_reported_and_persisted_from_available(store, actors, clock):
    listing = _create(store, actors, clock)
    db.session.commit()

    clock.advance(hours=2)
    assert store.get(listing.id).status == ListingStatus.EXPIRED
    db.session.commit()

    db.session.expire_all()
    row = db.session.get(Listing, listing.id)
    assert row.status == ListingStatus.EXPIRED
    assert row.expired_at is not None


def test_expiry_wins_over_claimed(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_claimed(listing)

    clock.advance(hours=1, seconds=1)
    assert store.get(listing.id).status == ListingStatus.EXPIRED


def test_not_expired_before_deadline(store, actors, clock):
    listing = _create(store, actors, clock)
    clock.advance(minutes=59)
    assert store.get(listing.id).status == ListingStatus.AVAILABLE


def test_delivered_listing_never_expires(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_claimed(listing)
    store.mark_delivered(listing)

    clock.advance(days=3)
    assert store.get(listing.id).status == ListingStatus.DELIVERED


def test_mark_claimed_requires_available(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_claimed(listing)
    with pytest.raises(InvalidTransition):
        store.mark_claimed(listing)


def test_mark_delivered_requires_claimed(store, actors, clock):
    listing = _create(store, actors, clock)
    with pytest.raises(InvalidTransition):
        store.mark_delivered(listing)


def test_delivered_is_terminal(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_claimed(listing)
    store.mark_delivered(listing)

    # Repeating the terminal transition is a no-op, anything else is refused
    assert store.mark_delivered(listing).status == ListingStatus.DELIVERED
    with pytest.raises(InvalidTransition):
        store.mark_claimed(listing)
    with pytest.raises(InvalidTransition):
        store.mark_expired(listing)


def test_mark_expired_is_idempotent(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_expired(listing)
    assert store.mark_expired(listing).status == ListingStatus.EXPIRED


def test_query_filters_after_expiry(store, actors, clock):
    short = _create(store, actors, clock, hours=1)
    long = _create(store, actors, clock, hours=5)
    clock.advance(hours=2)

    available = store.query(status=ListingStatus.AVAILABLE)
    assert [row.id for row in available] == [long.id]
    expired = store.query(status=ListingStatus.EXPIRED)
    assert [row.id for row in expired] == [short.id]


def test_status_filter_applies_before_limit(store, actors, clock):
    keeper = _create(store, actors, clock, hours=10)
    for _ in range(3):
        _create(store, actors, clock, hours=1)
    db.session.commit()

    clock.advance(hours=2)

    assert [r.id for r in store.query(status=ListingStatus.AVAILABLE, limit=2)] == [keeper.id]
    expired = store.query(status=ListingStatus.EXPIRED, limit=2)
    assert len(expired) == 2
    assert {r.status for r in expired} == {ListingStatus.EXPIRED}


def test_query_filters_by_food_type(store, actors, clock):
    soup = store.create(actors["donor"], title="Soup", quantity=4, expires_at=clock() + timedelta(hours=1), food_type="cooked")
    _create(store, actors, clock)

    assert [r.id for r in store.query(food_type="cooked")] == [soup.id]


def test_stale_read_does_not_expire_a_delivered_listing(store, actors, clock):
    listing = _create(store, actors, clock)
    store.mark_claimed(listing)
    db.session.commit()
    assert store.get(listing.id).status == ListingStatus.CLAIMED

    # Another transaction delivers it; this session still holds the claimed copy
    db.session.execute(
        update(Listing)
        .where(Listing.id == listing.id)
        .values(status=ListingStatus.DELIVERED)
        .execution_options(synchronize_session=False)
    )
    assert listing.status == ListingStatus.CLAIMED

    clock.advance(hours=2)
    fresh = store.get(listing.id)

    assert fresh.status == ListingStatus.DELIVERED
    assert fresh.expired_at is None
