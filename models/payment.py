import enum
from datetime import datetime
from models.db import db


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# no transition leaves these
TERMINAL_STATUSES = (PaymentStatus.PAID.value, PaymentStatus.FAILED.value)

PAYMENT_GATEWAYS = ("midtrans", "doku", "manual")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(40), nullable=False)
    payment_gateway = db.Column(db.String(20), nullable=False, default="midtrans")  # midtrans, doku, manual

    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    # order id we sent to the provider (midtrans order_id / doku invoice_number)
    external_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    redirect_url = db.Column(db.String(512), nullable=True)
    token = db.Column(db.String(255), nullable=True)
    session_id = db.Column(db.String(255), nullable=True)
    error_message = db.Column(db.String(255), nullable=True)

    gateway_response = db.Column(db.JSON, nullable=True)
    notification_data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking")

    __table_args__ = (
        # At most one in-flight payment per booking
        db.Index(
            "uq_payment_booking_pending",
            "booking_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self, include_booking=False):
        out = {
            "id": self.id,
            "booking_id": self.booking_id,
            "status": self.status,
            "amount": str(self.amount),
            "payment_method": self.payment_method,
            "payment_gateway": self.payment_gateway,
            "external_id": self.external_id,
            "redirect_url": self.redirect_url,
            "token": self.token,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat(),
        }
        if include_booking:
            out["booking_status"] = self.booking.status if self.booking else None
        return out
