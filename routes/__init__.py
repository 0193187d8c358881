from .health import health_bp
from .bookings import bookings_bp
from .payments import payments_bp
from .notifications import notifications_bp
from .admin import admin_bp
