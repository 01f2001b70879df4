from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models.delivery import Delivery
from ...models.enums import Role
from ...schemas.delivery import DeliverySchema, DeliveryUpdateSchema
from ...security import current_actor, has_role
from ...services.errors import NotFound
from ...services.lifecycle import LifecycleService

from .. import json_error as _json_error

bp = Blueprint("deliveries", __name__, url_prefix="/deliveries")

_delivery_schema = DeliverySchema()


def _load_delivery(delivery_id: int) -> Delivery:
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFound(f"Delivery {delivery_id} not found", delivery_id=delivery_id)
    return delivery


def _may_track(delivery: Delivery, user_id: int) -> bool:
    if has_role(Role.ADMIN):
        return True
    claim = delivery.claim
    return user_id in (int(claim.claimant_user_id), int(claim.listing.donor_user_id))


@bp.get("/<int:delivery_id>")
def get_delivery(delivery_id: int):
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    delivery = _load_delivery(delivery_id)
    if not _may_track(delivery, actor.id):
        return _json_error(f"Delivery {delivery_id} not found", 404)
    return jsonify({"delivery": _delivery_schema.dump(delivery)})


@bp.patch("/<int:delivery_id>")
def update_delivery(delivery_id: int):
    """Advance a delivery and/or report its live position.

    Body JSON: { status?: 'out_for_delivery' | 'delivered', lat?: float, lng?: float, eta?: iso8601 }
    """
    actor = current_actor()
    if actor is None:
        return _json_error("Authentication required", 401)
    delivery = _load_delivery(delivery_id)
    if not _may_track(delivery, actor.id):
        return _json_error("Not authorized to update this delivery", 403)

    data = DeliveryUpdateSchema().load(request.get_json(silent=True) or {})
    delivery = LifecycleService.from_config(current_app.config).update_delivery(
        delivery_id,
        status=data.get("status"),
        lat=data.get("lat"),
        lng=data.get("lng"),
        eta=data.get("eta"),
        actor_id=actor.id,
    )
    claim = delivery.claim
    return jsonify({
        "delivery": _delivery_schema.dump(delivery),
        "claimStatus": claim.status,
        "listingStatus": claim.listing.status,
    })
