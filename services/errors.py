"""
Booking errors, each carrying the HTTP status the web layer answers with.

Validation and not-found errors travel through every layer untouched; only
unexpected exceptions are turned into ``ServerError`` by ``wrap_unexpected``.
"""
import logging
from functools import wraps

from models import db

logger = logging.getLogger(__name__)


class BookingError(Exception):
    status_code = 500
    code = "BOOKING_ERROR"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class SlotUnavailableError(ValidationError):
    """Slot is full, or filled up between the capacity check and the insert."""
    status_code = 409
    code = "SLOT_UNAVAILABLE"


class InvalidTransitionError(ValidationError):
    code = "INVALID_TRANSITION"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(BookingError):
    status_code = 403
    code = "FORBIDDEN"


class ServerError(BookingError):
    code = "SERVER_ERROR"

    def __init__(self, message: str = "Something went wrong. Please try again later."):
        super().__init__(message)


def wrap_unexpected(operation: str):
    """
    Decorator for public service functions: BookingError passes through,
    anything else rolls back the session, is logged with its arguments and
    becomes an opaque ServerError.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except BookingError:
                raise
            except Exception as exc:
                db.session.rollback()
                logger.exception("Unexpected failure during %s (args=%r, kwargs=%r)", operation, args, kwargs)
                raise ServerError() from exc
        return wrapper
    return decorator
