# Overview: Request decorators for API routes (actor context and role checks).

from functools import wraps
from flask import request, jsonify, g


ROLES = {"admin", "manager", "sales", "finance", "viewer"}


def require_actor(f):
    """
    Require an authenticated actor forwarded by the upstream gateway.

    The gateway authenticates the caller and forwards:
    - X-Actor-Id: opaque user id used for audit attribution
    - X-Actor-Role: one of admin, manager, sales, finance, viewer

    Sets g.actor_id and g.actor_role. Returns 401 if either is missing or
    the role is unknown.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get("X-Actor-Id") or "").strip()
        actor_role = (request.headers.get("X-Actor-Role") or "").strip().lower()

        if not actor_id or actor_role not in ROLES:
            return jsonify({"error": "Authentication required"}), 401

        g.actor_id = actor_id
        g.actor_role = actor_role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the actor to hold one of `roles`.

    Must be applied after @require_actor. Returns 403 otherwise.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if getattr(g, "actor_role", None) not in roles:
                return jsonify({"error": "Insufficient permissions"}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
