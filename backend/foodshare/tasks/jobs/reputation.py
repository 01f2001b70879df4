import logging

from sqlalchemy.exc import SQLAlchemyError

from foodshare.services.errors import PersistenceFailure
from foodshare.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

_flask_app = None


def _app():
    global _flask_app
    if _flask_app is None:
        from foodshare import create_app

        _flask_app = create_app()
    return _flask_app


@celery_app.task(
    autoretry_for=(PersistenceFailure, SQLAlchemyError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=8,
)
def settle_claim_reputation(claim_id: int) -> dict:
    """Award completion points for a delivered claim. Safe to replay."""
    from foodshare.services.lifecycle import LifecycleService

    app = _app()
    with app.app_context():
        entries = LifecycleService.from_config(app.config).settle_reputation(claim_id)
        logger.info("settled reputation for claim %s", claim_id)
        return {"claimId": claim_id, "entryIds": [e.id for e in entries]}
