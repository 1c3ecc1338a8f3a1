from flask import Blueprint, request, jsonify

from models import db
from models.user import User
from routes.serializers import user_json
from security.credentials import MIN_PASSWORD_LENGTH, hash_password, verify_password
from security.session import bearer_token, create_session, revoke_session
from services.booking_lifecycle import EMAIL_RE
from utils.audit import log_event
from utils.auth_context import current_user, login_required
from utils.seed import get_role

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _credentials():
    body = request.get_json(silent=True) or {}
    return body, (body.get("email") or "").strip().lower(), body.get("password") or ""


# ---------- ACCOUNTS: visitors sign up to manage their tours ----------
@auth_bp.post("/register")
def register():
    body, email, password = _credentials()
    full_name = (body.get("full_name") or "").strip()[:120] or None

    if len(email) > 255 or not EMAIL_RE.match(email):
        return jsonify(error="Invalid email"), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"), 400
    if User.query.filter_by(email=email).count():
        return jsonify(error="Email already registered"), 409

    visitor = User(email=email, password_hash=hash_password(password), full_name=full_name)
    visitor.roles.append(get_role("VISITOR"))
    db.session.add(visitor)
    db.session.flush()
    log_event("ACCOUNT_REGISTER", user_id=visitor.id)
    db.session.commit()

    return jsonify(message="Registered successfully", user=user_json(visitor)), 201


@auth_bp.post("/login")
def login():
    _, email, password = _credentials()

    account = User.query.filter_by(email=email).one_or_none()
    if account is None or not verify_password(password, account.password_hash):
        log_event("LOGIN_FAIL", user_id=account.id if account else None, metadata={"email": email})
        db.session.commit()
        return jsonify(error="Invalid credentials"), 401

    log_event("LOGIN_SUCCESS", user_id=account.id)
    token = create_session(account.id)
    return jsonify(token=token, user=user_json(account)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(bearer_token())
    return jsonify(message="Logged out"), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(user_json(current_user())), 200
