def _money(value):
    return f"{value:.2f}" if value is not None else None

def _iso(value):
    return value.isoformat() if value else None

def payment_json(p):
    if p is None:
        return None
    return {
        "id": p.id,
        "amount": _money(p.amount),
        "status": p.status.value,
        "transaction_id": p.transaction_id,
        "payment_method": p.payment_method,
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
    }

def checkin_json(c):
    if c is None:
        return None
    return {
        "booking_reference": c.booking.reference,
        "checked_in_at": _iso(c.checked_in_at),
        "status": c.status,
    }

def booking_json(b, include_payment=True):
    out = {
        "reference": b.reference,
        "name": b.visitor_name,
        "email": b.email,
        "date": b.tour_date.isoformat(),
        "time_slot": b.time_slot,
        "group_size": b.group_size,
        "deposit": _money(b.deposit),
        "status": b.status.value,
        "has_feedback": b.has_feedback,
        "created_at": _iso(b.created_at),
        "cancelled_at": _iso(b.cancelled_at),
        "checked_in_at": _iso(b.checkin.checked_in_at) if b.checkin else None,
    }
    if include_payment:
        out["payment"] = payment_json(b.payment)
    return out

def user_json(u):
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "roles": sorted(r.name for r in u.roles),
        "created_at": _iso(u.created_at),
    }

def feedback_json(f, include_booking=False):
    out = {
        "id": f.id,
        "rating": f.rating,
        "comments": f.comments,
        "is_public": f.is_public,
        "created_at": _iso(f.created_at),
    }
    if include_booking:
        out["booking_reference"] = f.booking.reference
        out["date"] = f.booking.tour_date.isoformat()
        out["time_slot"] = f.booking.time_slot
    return out
