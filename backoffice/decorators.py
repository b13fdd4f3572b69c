# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import token_service


def _is_authenticated() -> bool:
    return hasattr(g, "current_user")


def require_auth(f):
    """
    Require a bearer token and set g.current_user.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Unknown token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "message": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = token_service.user_for_token(token)

        if not user:
            return jsonify({"success": False, "message": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"success": False, "message": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "success": False,
                    "message": "Permission denied",
                    "details": {"required_roles": list(roles), "role": g.current_user.role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
