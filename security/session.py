from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.auth_session import AuthSession
from security.credentials import hash_token, new_token


def create_session(user_id: int) -> str:
    """
    Opens a bearer-token session and returns the raw token for the client.
    Only its SHA-256 hash is persisted.
    """
    token = new_token()
    ttl = timedelta(seconds=current_app.config.get("SESSION_LIFETIME_SECONDS", 28800))
    db.session.add(AuthSession(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=datetime.utcnow() + ttl,
    ))
    db.session.commit()
    return token


def bearer_token():
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def _find(raw_token: str, include_revoked=False):
    q = AuthSession.query.filter_by(token_hash=hash_token(raw_token))
    if not include_revoked:
        q = q.filter_by(revoked=False)
    return q.first()


def _is_live(sess: AuthSession, now: datetime) -> bool:
    idle = timedelta(seconds=current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200))
    last_activity = sess.last_seen_at or sess.created_at
    return now < sess.expires_at and now < last_activity + idle


def get_session_from_request():
    """Live session for the request's bearer token, or None. Touches last_seen_at."""
    raw_token = bearer_token()
    sess = _find(raw_token) if raw_token else None
    if sess is None:
        return None

    now = datetime.utcnow()
    if not _is_live(sess, now):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    sess = _find(raw_token, include_revoked=True) if raw_token else None
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True
