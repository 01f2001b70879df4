from flask import Blueprint, jsonify, request, current_app

from ...models.claim import Claim
from ...models.enums import ClaimStatus, Role
from ...schemas.listing import ListingCreateSchema, ListingSchema
from ...security import current_actor, has_role
from ...services.lifecycle import LifecycleService
from ...extensions import db

from .. import json_error as _json_error

bp = Blueprint("listings", __name__, url_prefix="/listings")

_listing_schema = ListingSchema()


def _service() -> LifecycleService:
    return LifecycleService.from_config(current_app.config)


@bp.post("")
def create_listing():
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    if not has_role(Role.DONOR, Role.ADMIN):
        return _json_error("Only donors can post listings", 403)

    data = ListingCreateSchema().load(request.get_json(silent=True) or {})
    listing = _service().create_listing(actor.id, **data)
    return jsonify({"listing": _listing_schema.dump(listing)}), 201


@bp.get("")
def list_listings():
    """List listings, newest first.

    Query params:
      - status: available | claimed | expired | delivered (evaluated after expiry)
      - donorId: int
      - foodType: exact match, e.g. cooked | bakery | produce
      - limit: int (default 200, max 500)
    """
    status = request.args.get("status")
    donor_id = request.args.get("donorId")
    try:
        donor = int(donor_id) if donor_id else None
        limit = int(request.args.get("limit", 200))
    except (TypeError, ValueError):
        return _json_error("Invalid donorId or limit", 400)
    rows = _service().list_listings(
        status=status,
        donor_id=donor,
        food_type=(request.args.get("foodType") or "").strip() or None,
        limit=max(1, min(500, limit)),
    )
    return jsonify({"listings": _listing_schema.dump(rows, many=True)})


@bp.get("/<int:listing_id>")
def get_listing(listing_id: int):
    listing = _service().get_listing(listing_id)
    active = (
        db.session.query(db.func.count(Claim.id))
        .filter(Claim.listing_id == listing_id, Claim.status.in_(ClaimStatus.ACTIVE))
        .scalar()
    )
    payload = _listing_schema.dump(listing)
    payload["activeClaims"] = int(active or 0)
    return jsonify({"listing": payload})
