from functools import wraps

from flask import g, jsonify

from models import db
from models.user import User
from security.session import get_session_from_request


def load_current_user():
    """Resolves the request's bearer token into g.user; anonymous visitors get None."""
    sess = get_session_from_request()
    g.session = sess
    g.user = db.session.get(User, sess.user_id) if sess else None


def current_user():
    return getattr(g, "user", None)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            resp = jsonify(error="Authentication required")
            resp.headers["WWW-Authenticate"] = "Bearer"
            return resp, 401
        return fn(*args, **kwargs)
    return wrapper
