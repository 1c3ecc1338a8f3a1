from .db import db, atomic
from .user import User, Role, user_roles
from .auth_session import AuthSession
from .audit_log import AuditLog
from .booking import Booking, BookingStatus
from .payment import Payment
from .checkin import Checkin
from .feedback import Feedback
