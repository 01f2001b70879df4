"""Shared pytest fixtures: a Flask app on a temporary SQLite file, seeded actors and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from foodshare import create_app
from foodshare.extensions import db
from foodshare.models.enums import Role
from foodshare.models.user import Actor
from foodshare.services.lifecycle import LifecycleService


class FakeClock:
    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(tmp_path, clock):
    app = create_app(
        "testing",
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'foodshare.db'}",
        LIFECYCLE_CLOCK=clock,
    )
    with app.app_context():
        db.create_all()
        try:
            yield app
        finally:
            db.session.remove()
            db.drop_all()
            db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def actors(app):
    """One actor per role, keyed by role name."""
    rows = {
        role: Actor(email=f"{role}@example.org", name=role.title(), role=role)
        for role in Role.ALL
    }
    rows["recipient2"] = Actor(email="recipient2@example.org", name="Second recipient", role=Role.RECIPIENT)
    db.session.add_all(rows.values())
    db.session.commit()
    return {key: actor.id for key, actor in rows.items()}


@pytest.fixture
def retries():
    return []


@pytest.fixture
def service(app, clock, retries):
    return LifecycleService(clock=clock, retry_hook=retries.append)


@pytest.fixture
def listing(service, actors, clock):
    return service.create_listing(
        actors["donor"],
        title="Vegetable curry",
        quantity=5,
        unit="portions",
        expires_at=clock() + timedelta(hours=1),
        location="Community kitchen",
    )