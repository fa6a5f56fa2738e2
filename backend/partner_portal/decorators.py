# Overview: Partner identity tokens and the request decorator that enforces them.

from functools import wraps
from typing import Optional

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, URLSafeSerializer


def _serializer() -> URLSafeSerializer:
    return URLSafeSerializer(
        current_app.config["SECRET_KEY"],
        salt=current_app.config.get("PARTNER_TOKEN_SALT", "partner-identity"),
    )


def issue_partner_token(partner_user_id: str) -> str:
    """Signed bearer token carrying the partner's user id (app context required)."""
    return _serializer().dumps({"uid": str(partner_user_id)})


def resolve_partner_token(token: str) -> Optional[str]:
    """Partner user id for a valid token, None for a tampered or malformed one."""
    try:
        payload = _serializer().loads(token)
    except BadSignature:
        return None
    if not isinstance(payload, dict):
        return None
    uid = payload.get("uid")
    return str(uid) if uid else None


def require_partner(f):
    """
    Require a signed partner identity.

    Sets g.partner_user_id. Everything the partner sees or changes is scoped
    through it (owned restaurants, owned or member stores).

    SECURITY: Returns 401 if:
    - No Authorization header
    - Token signature invalid
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        partner_user_id = resolve_partner_token(token)

        if not partner_user_id:
            return jsonify({"error": "Invalid partner token"}), 401

        g.partner_user_id = partner_user_id
        return f(*args, **kwargs)

    return decorated_function
