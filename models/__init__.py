from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .slot import BookingSlot
from .booking import Booking
from .payment import Payment, PaymentStatus
