# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.identity_service import resolve_token


def _is_authenticated() -> bool:
    return hasattr(g, 'user_id') and hasattr(g, 'org_id')


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.user_id: The caller's id from the identity provider
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.role: The caller's role

    SECURITY: Returns 401 if:
    - No Authorization header
    - Token unknown to the identity provider
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        identity = resolve_token(token)

        if identity is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.user_id = identity.user_id
        g.org_id = identity.org_id
        g.role = identity.role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the caller's role to be one of roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": sorted(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
