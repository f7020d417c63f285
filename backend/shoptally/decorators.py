# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models.auth import DEFAULT_BUSINESS_ID
from .services import session_service
from .services.scope_service import Scope


def _resolve_business_id(user) -> str:
    header = (request.headers.get("X-Business-Id") or "").strip()
    if header:
        return header
    return user.active_business_id or DEFAULT_BUSINESS_ID


def require_auth(f):
    """
    Require a bearer session and establish the business scope.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.scope: Scope(user_id, business_id) for every service call
    - g.session_context: The full SessionContext object

    business_id comes from the X-Business-Id header, else the user's
    active_business_id, else 'default'.

    Returns 401 if there is no Authorization header, or the token is
    unknown, expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.scope = Scope(user_id=context.user.id, business_id=_resolve_business_id(context.user))
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function
