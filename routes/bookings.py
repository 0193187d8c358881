from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g
from models import db
from models.slot import BookingSlot
from models.booking import Booking, BOOKING_STATUSES, BOOKING_TYPES
from utils.auth_context import login_required, is_staff
from utils.audit import log_event

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")

def _parse_amount(raw):
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, TypeError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount.quantize(Decimal("0.01"))

# ---------- CUSTOMERS: book a slot ----------
@bookings_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    slot_id = data.get("slot_id")
    booking_type = (data.get("type") or "consultation").strip().lower()
    notes = (data.get("notes") or "").strip() or None

    if not slot_id:
        return jsonify(error="slot_id required"), 400
    if booking_type not in BOOKING_TYPES:
        return jsonify(error=f"type must be one of {', '.join(BOOKING_TYPES)}"), 400

    total_amount = _parse_amount(data.get("total_amount"))
    if total_amount is None:
        return jsonify(error="total_amount must be a positive number"), 400

    try:
        slot_id = int(slot_id)
    except (TypeError, ValueError):
        return jsonify(error="slot_id must be an integer"), 400

    slot = db.session.get(BookingSlot, slot_id)
    if not slot or not slot.is_available:
        return jsonify(error="Slot not found"), 404

    booking = Booking(
        user_id=g.user.id,
        slot_id=slot.id,
        type=booking_type,
        status="pending",
        total_amount=total_amount,
        notes=notes,
    )
    db.session.add(booking)
    db.session.commit()

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"slot_id": slot.id})
    return jsonify(booking.to_dict()), 201

# ---------- CUSTOMERS: view my bookings ----------
@bookings_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")  # pending/confirmed/completed/canceled
    if status and status not in BOOKING_STATUSES:
        return jsonify(error="Unknown status"), 400
    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.created_at.desc()).all()
    return jsonify([b.to_dict() for b in rows]), 200

@bookings_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking or (booking.user_id != g.user.id and not is_staff(g.user)):
        return jsonify(error="Booking not found"), 404
    return jsonify(booking.to_dict()), 200
