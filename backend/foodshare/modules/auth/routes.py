from flask import request, jsonify
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash, check_password_hash

from ...extensions import db
from ...models.user import Actor
from ...schemas.actor import ActorSchema, LoginSchema, RegisterSchema
from ...security import issue_token
from .. import json_error as _json_error
from . import bp

_actor_schema = ActorSchema()


@bp.post("/register")
def register():
    """Create a donor, NGO or recipient account and return a signed token.

    Body JSON:
      - email: string (required)
      - password: string (required, min 8)
      - role: 'donor' | 'ngo' | 'recipient' (required)
      - name, organization, phone: string (optional)
    """
    data = RegisterSchema().load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()

    if Actor.query.filter_by(email=email).first():
        return _json_error("Email already in use", 409)

    actor = Actor(
        email=email,
        name=(data.get("name") or "").strip() or None,
        role=data["role"],
        organization=data.get("organization"),
        phone=data.get("phone"),
        password_hash=generate_password_hash(data["password"]),
    )
    db.session.add(actor)
    db.session.commit()

    payload = _actor_schema.dump(actor)
    payload["token"] = issue_token(int(actor.id), actor.role)
    return jsonify(payload), 201


@bp.post("/login")
def login():
    data = LoginSchema().load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()

    actor = Actor.query.filter_by(email=email).first()
    if not actor or not actor.password_hash or not check_password_hash(actor.password_hash, data["password"]):
        return _json_error("Invalid email or password", 401)

    # Update last login timestamp
    try:
        actor.last_login_at = func.now()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()

    payload = _actor_schema.dump(actor)
    payload["token"] = issue_token(int(actor.id), actor.role)
    return jsonify(payload)
