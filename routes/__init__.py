from .health import health_bp
from .auth import auth_bp
from .booking import booking_bp
from .payments import payments_bp
from .payment_webhook import webhook_bp
from .checkin import checkin_bp
from .admin import admin_bp
from .feedback import feedback_bp
