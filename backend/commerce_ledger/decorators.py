# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import Unauthorized
from .permissions import KNOWN_ROLES
from .services import permission_service
from .services.permission_service import Actor


def _header_int(name: str) -> int | None:
    value = request.headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def require_actor(f):
    """
    Resolve the calling actor from trusted upstream headers.

    Authentication happens in front of this service; the gateway forwards:
    - X-Actor-Id: acting user id
    - X-Store-Id: store the request operates on
    - X-Actor-Role: owner | admin | seller | technician

    Sets g.actor. Returns 401 when the identity is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = _header_int("X-Actor-Id")
        store_id = _header_int("X-Store-Id")
        role = (request.headers.get("X-Actor-Role") or "").strip().lower()

        if actor_id is None or store_id is None or not role:
            return jsonify({
                "error": "UNAUTHENTICATED",
                "message": "X-Actor-Id, X-Store-Id and X-Actor-Role headers are required",
            }), 401

        if role not in KNOWN_ROLES:
            return jsonify({
                "error": "UNAUTHENTICATED",
                "message": f"Unknown role '{role}'",
            }), 401

        g.actor = Actor(actor_id=actor_id, store_id=store_id, role=role)
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission for read-only routes.

    Mutating routes leave the check to the service so that the denied
    attempt is audited.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_actor was called first
            if not hasattr(g, "actor"):
                return jsonify({"error": "UNAUTHENTICATED", "message": "Actor required"}), 401

            try:
                permission_service.require_permission(g.actor, permission_code)
            except Unauthorized as e:
                return jsonify(e.to_dict()), e.http_status

            return f(*args, **kwargs)

        return decorated_function
    return decorator
