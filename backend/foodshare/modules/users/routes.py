from flask import Blueprint, jsonify, current_app

from ...extensions import db
from ...models.user import Actor
from ...schemas.actor import ActorSchema
from ...schemas.review import ReputationEntrySchema
from ...security import current_actor
from ...services.errors import NotFound
from ...services.lifecycle import LifecycleService
from .. import json_error

bp = Blueprint("users", __name__, url_prefix="/users")


@bp.get("/me")
def me():
    actor = current_actor()
    if actor is None:
        return json_error("Authentication required", 401)
    return jsonify({"user": ActorSchema().dump(actor)})


@bp.get("/<int:user_id>/reputation")
def reputation(user_id: int):
    """Derived reputation: summed points, review average and the latest ledger entries."""
    if db.session.get(Actor, user_id) is None:
        raise NotFound(f"User {user_id} not found", user_id=user_id)
    summary = LifecycleService.from_config(current_app.config).reputation(user_id)
    summary["entries"] = ReputationEntrySchema().dump(summary["entries"], many=True)
    return jsonify({"reputation": summary})
