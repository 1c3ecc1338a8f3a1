import logging
from functools import wraps

from flask import jsonify, request

from utils.auth_context import current_user

logger = logging.getLogger(__name__)


def current_user_is_admin() -> bool:
    user = current_user()
    return user is not None and user.is_admin


def require_roles(*role_names: str):
    """
    Route guard for staff endpoints: 401 without a live bearer session,
    403 unless the user holds one of role_names.

    Usage: @require_roles("ADMIN")
    """
    allowed = set(role_names)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not any(user.has_role(name) for name in allowed):
                logger.warning("User %s denied %s %s", user.id, request.method, request.path)
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
