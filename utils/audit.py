import json
from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog

def log_event(action: str, user_id=None, booking=None, from_status=None, to_status=None, metadata=None):
    """
    Adds an audit row to the current session. It is committed (or rolled back)
    together with the change it describes, so callers own the commit.
    """
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        action=action,
        booking_reference=booking.reference if booking is not None else None,
        from_status=_status_value(from_status),
        to_status=_status_value(to_status),
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    return row

def _status_value(status):
    if status is None:
        return None
    return getattr(status, "value", status)
