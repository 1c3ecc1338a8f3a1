"""
Visitor feedback on tours that took place.

A booking carries at most one Feedback row and ``Booking.has_feedback`` is
written in the same transaction as that row, so the flag and the table
always agree.
"""
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db, atomic
from models.booking import Booking, BookingStatus
from models.feedback import RATING_MAX, RATING_MIN, Feedback
from services.errors import ForbiddenError, NotFoundError, ValidationError, wrap_unexpected
from utils.audit import log_event

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "Feedback has already been submitted for this booking."
MAX_COMMENT_LENGTH = 2000

# statuses of a tour the visitor actually attended
REVIEWABLE_STATUSES = (BookingStatus.CHECKED_IN, BookingStatus.COMPLETED)


def parse_rating(value) -> int:
    rating = None
    if isinstance(value, int) and not isinstance(value, bool):
        rating = value
    elif isinstance(value, str) and value.strip().isdigit():
        rating = int(value.strip())

    if rating is None or rating < RATING_MIN or rating > RATING_MAX:
        raise ValidationError(f"Rating must be a whole number from {RATING_MIN} to {RATING_MAX}.")
    return rating


def _comments(value) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError("Comments are required.")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comments must be at most {MAX_COMMENT_LENGTH} characters.")
    return text


def _visibility(value) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError("isPublic must be true or false.")
    return value


def _is_reviewer(booking: Booking, user) -> bool:
    # guests who booked before signing up are matched on their booking email
    return booking.user_id == user.id or booking.email.lower() == user.email


@wrap_unexpected("submit feedback")
def submit_feedback(reference, user, rating, comments, is_public=None) -> Feedback:
    score = parse_rating(rating)
    text = _comments(comments)
    public = _visibility(is_public)
    if not isinstance(reference, str):
        raise NotFoundError(f"Booking {reference} not found")

    try:
        with atomic():
            booking = (
                Booking.query
                .filter_by(reference=reference.strip())
                .with_for_update()
                .first()
            )
            if booking is None:
                raise NotFoundError(f"Booking {reference} not found")
            if not _is_reviewer(booking, user):
                raise ForbiddenError("You can only review your own tours")
            if booking.feedback is not None:
                raise ValidationError(ALREADY_SUBMITTED)
            if booking.status not in REVIEWABLE_STATUSES:
                raise ValidationError(
                    f"Feedback opens once the tour has taken place (current status: {booking.status.value})."
                )

            feedback = Feedback(booking=booking, user_id=user.id, rating=score, comments=text, is_public=public)
            db.session.add(feedback)
            booking.has_feedback = True
            log_event("FEEDBACK_SUBMIT", user_id=user.id, booking=booking,
                      metadata={"rating": score, "public": public})
    except IntegrityError:
        # concurrent submission won the unique booking_id
        raise ValidationError(ALREADY_SUBMITTED)

    logger.info("Feedback %s recorded for booking %s", feedback.id, booking.reference)
    return feedback


@wrap_unexpected("list public feedback")
def list_public_feedback(limit: int = 50) -> list:
    return (
        Feedback.query
        .filter_by(is_public=True)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(limit)
        .all()
    )


@wrap_unexpected("list user feedback")
def list_feedback_for_user(user_id: int) -> list:
    return (
        Feedback.query
        .filter_by(user_id=user_id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .all()
    )


@wrap_unexpected("list feedback")
def list_feedback(is_public=None, limit=200) -> list:
    q = Feedback.query
    if is_public is not None:
        q = q.filter_by(is_public=is_public)
    return q.order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(limit).all()


@wrap_unexpected("average rating")
def average_rating() -> float:
    """Mean rating over all feedback, 0.0 when there is none."""
    value = db.session.query(func.avg(Feedback.rating)).scalar()
    return round(float(value), 2) if value is not None else 0.0


def _get(feedback_id) -> Feedback:
    feedback = db.session.get(Feedback, feedback_id)
    if feedback is None:
        raise NotFoundError(f"Feedback {feedback_id} not found")
    return feedback


@wrap_unexpected("set feedback visibility")
def set_feedback_visibility(feedback_id: int, is_public, actor_id=None) -> Feedback:
    if not isinstance(is_public, bool):
        raise ValidationError("isPublic must be true or false.")
    with atomic():
        feedback = _get(feedback_id)
        feedback.is_public = is_public
        log_event("FEEDBACK_VISIBILITY", user_id=actor_id, booking=feedback.booking,
                  metadata={"feedback_id": feedback.id, "public": is_public})
    return feedback


@wrap_unexpected("delete feedback")
def delete_feedback(feedback_id: int, actor_id=None):
    with atomic():
        feedback = _get(feedback_id)
        booking = feedback.booking
        booking.has_feedback = False
        db.session.delete(feedback)
        log_event("FEEDBACK_DELETE", user_id=actor_id, booking=booking,
                  metadata={"feedback_id": feedback_id})
    logger.info("Feedback %s deleted from booking %s", feedback_id, booking.reference)
