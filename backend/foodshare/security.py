from __future__ import annotations

from typing import Optional, Tuple
from flask import current_app, g
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("SECRET_KEY") or "change-me"
    # Salt provides namespace isolation for tokens
    return URLSafeTimedSerializer(secret_key=secret, salt="auth-token")


def issue_token(user_id: int, role: str) -> str:
    """Issue a signed token for an actor.

    Payload is minimal: {"id": int, "role": str}
    """
    s = _serializer()
    return s.dumps({"id": int(user_id), "role": str(role)})


def verify_token(token: str) -> Tuple[Optional[int], Optional[str]]:
    """Verify a token and return (user_id, role) if valid, else (None, None)."""
    max_age = int(current_app.config.get("AUTH_TOKEN_MAX_AGE", 60 * 60 * 24 * 30))
    try:
        data = _serializer().loads(token, max_age=max_age)
        uid = int(data.get("id")) if isinstance(data, dict) and data.get("id") is not None else None
        role = str(data.get("role")) if isinstance(data, dict) and data.get("role") is not None else None
        return (uid, role)
    except (BadSignature, SignatureExpired, ValueError, TypeError):
        return (None, None)


def current_actor():
    return getattr(g, "current_user", None)


def current_actor_id() -> int | None:
    uid = getattr(g, "current_user_id", None)
    return int(uid) if uid is not None else None


def has_role(*roles: str) -> bool:
    actor = current_actor()
    return bool(actor is not None and actor.role in roles)
