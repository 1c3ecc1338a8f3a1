from flask import Blueprint, jsonify, g, request

from routes.serializers import feedback_json
from security.rbac import require_roles
from services import feedback as feedback_service
from utils.auth_context import current_user, login_required

feedback_bp = Blueprint("feedback", __name__, url_prefix="/feedback")


# ---------- VISITORS: review an attended tour ----------
@feedback_bp.post("")
@login_required
def submit_feedback():
    data = request.get_json(silent=True) or {}
    reference = data.get("reference") or data.get("bookingId")
    if not reference:
        return jsonify(error="reference required"), 400

    feedback = feedback_service.submit_feedback(
        reference,
        current_user(),
        rating=data.get("rating"),
        comments=data.get("comments"),
        is_public=data.get("isPublic", data.get("is_public")),
    )
    return jsonify(feedback_json(feedback, include_booking=True)), 201


@feedback_bp.get("/me")
@login_required
def my_feedback():
    rows = feedback_service.list_feedback_for_user(current_user().id)
    return jsonify(data=[feedback_json(f, include_booking=True) for f in rows], total=len(rows)), 200


# ---------- PUBLIC: testimonials ----------
@feedback_bp.get("/public")
def public_feedback():
    limit = min(request.args.get("limit", default=50, type=int), 200)
    return jsonify([feedback_json(f) for f in feedback_service.list_public_feedback(limit)]), 200


@feedback_bp.get("/average")
def average_rating():
    return jsonify(averageRating=feedback_service.average_rating()), 200


# ---------- ADMIN: moderation ----------
@feedback_bp.get("")
@require_roles("ADMIN")
def list_feedback():
    visibility = request.args.get("public")
    is_public = None if visibility is None else visibility.lower() in ("1", "true", "yes")
    rows = feedback_service.list_feedback(is_public=is_public)
    return jsonify([feedback_json(f, include_booking=True) for f in rows]), 200


@feedback_bp.patch("/<int:feedback_id>")
@require_roles("ADMIN")
def set_visibility(feedback_id: int):
    data = request.get_json(silent=True) or {}
    feedback = feedback_service.set_feedback_visibility(
        feedback_id, data.get("isPublic", data.get("is_public")), actor_id=g.user.id
    )
    return jsonify(feedback_json(feedback, include_booking=True)), 200


@feedback_bp.delete("/<int:feedback_id>")
@require_roles("ADMIN")
def delete_feedback(feedback_id: int):
    feedback_service.delete_feedback(feedback_id, actor_id=g.user.id)
    return jsonify(message="Feedback deleted"), 200
