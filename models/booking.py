from datetime import datetime
from models.db import db

BOOKING_TYPES = ("consultation", "treatment")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "canceled")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("booking_slots.id"), nullable=False, index=True)

    type = db.Column(db.String(20), nullable=False, default="consultation")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    # status values: pending, confirmed, completed, canceled

    # fixed at creation; the payment flow only moves status
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "slot_id": self.slot_id,
            "type": self.type,
            "status": self.status,
            "total_amount": str(self.total_amount),
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
