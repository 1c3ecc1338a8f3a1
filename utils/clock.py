from datetime import datetime, date
from zoneinfo import ZoneInfo

from flask import current_app


def local_now() -> datetime:
    """Current wall-clock time on campus, as a naive datetime."""
    tz = ZoneInfo(current_app.config.get("TOUR_TIMEZONE", "Asia/Singapore"))
    return datetime.now(tz).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()
