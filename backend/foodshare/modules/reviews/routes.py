from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models.claim import Claim
from ...models.reputation import Review
from ...schemas.review import ReviewCreateSchema, ReviewSchema
from ...security import current_actor
from ...services.errors import NotFound
from ...services.lifecycle import LifecycleService

from .. import json_error as _json_error

bp = Blueprint("reviews", __name__, url_prefix="/reviews")

_review_schema = ReviewSchema()


@bp.post("")
def create_review():
    """Review the other party of a delivered claim.

    Body JSON: { claimId: int, rating: 1-5, comment?: str, revieweeId?: int }
    revieweeId defaults to the counterpart (donor <-> claimant).
    """
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)

    data = ReviewCreateSchema().load(request.get_json(silent=True) or {})
    claim = db.session.get(Claim, data["claim_id"])
    if claim is None:
        raise NotFound(f"Claim {data['claim_id']} not found", claim_id=data["claim_id"])

    donor_id = int(claim.listing.donor_user_id)
    claimant_id = int(claim.claimant_user_id)
    if actor.id == donor_id:
        counterpart = claimant_id
    elif actor.id == claimant_id:
        counterpart = donor_id
    else:
        return _json_error("Only the donor or the claimant can review this claim", 403)

    reviewee_id = data.get("reviewee_id") or counterpart
    if reviewee_id != counterpart:
        return _json_error("Reviews must be about the other party of the claim", 400)

    review = LifecycleService.from_config(current_app.config).record_review(
        claim.id,
        actor.id,
        reviewee_id,
        data["rating"],
        comment=data.get("comment"),
    )
    return jsonify({"review": _review_schema.dump(review)}), 201


@bp.get("")
def list_reviews():
    q = Review.query
    try:
        if request.args.get("claimId"):
            q = q.filter(Review.claim_id == int(request.args["claimId"]))
        if request.args.get("revieweeId"):
            q = q.filter(Review.reviewee_user_id == int(request.args["revieweeId"]))
    except (TypeError, ValueError):
        return _json_error("Invalid claimId or revieweeId", 400)
    rows = q.order_by(Review.created_at.desc(), Review.id.desc()).limit(200).all()
    return jsonify({"reviews": _review_schema.dump(rows, many=True)})
