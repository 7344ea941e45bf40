# Overview: Request decorators for API routes; resolve the acting user and enforce roles.

from functools import wraps
from flask import request, jsonify, g

from .services.user_service import get_user


def require_user(f):
    """
    Resolve the acting user from the X-User-Id header into g.current_user.

    Returns 401 when the header is missing or names an unknown or inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = get_user(int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Invalid or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require @require_user first; returns 403 unless the acting user holds one of `roles`."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
