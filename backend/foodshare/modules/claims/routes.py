from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models.audit_log import AuditLog
from ...models.claim import Claim
from ...models.enums import ClaimStatus, Role
from ...models.listing import Listing
from ...schemas.claim import ClaimDecisionSchema, ClaimRequestSchema, ClaimSchema
from ...schemas.delivery import DeliverySchema
from ...security import current_actor, has_role
from ...services.errors import NotFound
from ...services.lifecycle import LifecycleService

from .. import json_error as _json_error

bp = Blueprint("claims", __name__, url_prefix="/claims")

_claim_schema = ClaimSchema()
_delivery_schema = DeliverySchema()


def _service() -> LifecycleService:
    return LifecycleService.from_config(current_app.config)


def _load_claim(claim_id: int) -> Claim:
    claim = db.session.get(Claim, claim_id)
    if claim is None:
        raise NotFound(f"Claim {claim_id} not found", claim_id=claim_id)
    return claim


def _is_party(claim: Claim, user_id: int) -> bool:
    return user_id in (int(claim.claimant_user_id), int(claim.listing.donor_user_id))


def _history(claim_id: int) -> list[dict]:
    logs = (
        AuditLog.query
        .filter(AuditLog.entity_type == "claim", AuditLog.entity_id == claim_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )
    return [
        {
            "action": log.action,
            "actorId": log.actor_user_id,
            "details": log.details,
            "createdAt": log.created_at.isoformat() if log.created_at else None,
        }
        for log in logs
    ]


@bp.post("")
def create_claim():
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    if not has_role(*Role.CLAIMANTS):
        return _json_error("Only NGOs and recipients can claim listings", 403)

    data = ClaimRequestSchema().load(request.get_json(silent=True) or {})
    claim = _service().request_claim(
        data["listing_id"],
        actor.id,
        notes=data.get("notes"),
        pickup_time=data.get("pickup_time"),
    )
    return jsonify({"claim": _claim_schema.dump(claim)}), 201


@bp.get("")
def list_claims():
    """List claims with optional filters.

    Query params:
      - listingId: int
      - claimantId: int
      - status: pending | accepted | rejected | completed
      - limit: int (default 200)
    Non-admins only see claims they made or claims on their own listings.
    """
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)

    q = Claim.query.join(Listing, Claim.listing_id == Listing.id)
    if not has_role(Role.ADMIN):
        q = q.filter(db.or_(Claim.claimant_user_id == actor.id, Listing.donor_user_id == actor.id))
    try:
        if request.args.get("listingId"):
            q = q.filter(Claim.listing_id == int(request.args["listingId"]))
        if request.args.get("claimantId"):
            q = q.filter(Claim.claimant_user_id == int(request.args["claimantId"]))
        limit = int(request.args.get("limit", 200))
    except (TypeError, ValueError):
        return _json_error("Invalid listingId, claimantId or limit", 400)
    status = (request.args.get("status") or "").lower().strip()
    if status:
        if status not in ClaimStatus.ALL:
            return _json_error("Invalid status", 400)
        q = q.filter(Claim.status == status)

    claims = q.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(max(1, min(500, limit))).all()
    return jsonify({"claims": _claim_schema.dump(claims, many=True)})


@bp.get("/<int:claim_id>")
def get_claim(claim_id: int):
    """Fetch a claim with its delivery and decision history."""
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    claim = _load_claim(claim_id)
    if not has_role(Role.ADMIN) and not _is_party(claim, actor.id):
        return _json_error(f"Claim {claim_id} not found", 404)  # hide existence

    payload = _claim_schema.dump(claim)
    payload["delivery"] = _delivery_schema.dump(claim.delivery) if claim.delivery else None
    payload["history"] = _history(claim_id)
    return jsonify({"claim": payload})


@bp.patch("/<int:claim_id>")
def decide_claim(claim_id: int):
    """Accept or reject a pending claim.

    Body JSON: { status: 'accepted' | 'rejected', deliveryAgent?: str, eta?: iso8601 }
    Accepting schedules a delivery and auto-rejects the listing's other pending claims.
    """
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    claim = _load_claim(claim_id)
    if not has_role(Role.ADMIN) and int(claim.listing.donor_user_id) != actor.id:
        return _json_error("Only the listing's donor can decide this claim", 403)

    data = ClaimDecisionSchema().load(request.get_json(silent=True) or {})
    outcome = _service().decide_claim(
        claim_id,
        data["status"] == ClaimStatus.ACCEPTED,
        actor_id=actor.id,
        delivery_agent=data.get("delivery_agent"),
        eta=data.get("eta"),
    )
    return jsonify({
        "claim": _claim_schema.dump(outcome.claim),
        "delivery": _delivery_schema.dump(outcome.delivery) if outcome.delivery else None,
        "autoRejected": [c.id for c in outcome.rejected],
    })
