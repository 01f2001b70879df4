"""Tests for the background reputation settlement job."""

from foodshare.extensions import db
from foodshare.models.enums import DeliveryStatus
from foodshare.models.reputation import ReputationEntry
from foodshare.services import lifecycle
from foodshare.tasks.jobs import reputation as reputation_jobs


def test_settle_job_awards_points_once(app, service, listing, actors, monkeypatch):
    monkeypatch.setattr(reputation_jobs, "_flask_app", app)
    monkeypatch.setattr(service.ledger, "award_completion", _raise_persistence_failure)

    claim = service.request_claim(listing.id, actors["ngo"])
    delivery = service.decide_claim(claim.id, True).delivery
    service.update_delivery(delivery.id, status=DeliveryStatus.DELIVERED)
    claim_id = claim.id

    result = reputation_jobs.settle_claim_reputation(claim_id)
    reputation_jobs.settle_claim_reputation(claim_id)

    db.session.expire_all()
    assert len(result["entryIds"]) == 2
    assert ReputationEntry.query.filter_by(claim_id=claim_id).count() == 2


def test_enqueue_failure_is_logged_not_raised(monkeypatch, caplog):
    class BrokenTask:
        def delay(self, claim_id):
            raise ConnectionError("broker down")

    monkeypatch.setattr(reputation_jobs, "settle_claim_reputation", BrokenTask())
    lifecycle.enqueue_reputation_retry(5)
    assert "could not enqueue reputation settlement for claim 5" in caplog.text


def _raise_persistence_failure(*args, **kwargs):
    from foodshare.services.errors import PersistenceFailure

    raise PersistenceFailure("ledger offline")
