import logging

from flask import Blueprint, jsonify, g, request

from gateways import GatewayError, Outcome, generate_order_id, get_registry
from gateways.manual import MANUAL_METHODS
from models import db
from models.booking import Booking
from models.payment import Payment, PaymentStatus, PAYMENT_GATEWAYS
from routes.payments import GENERIC_FAILURE, start_checkout
from security.rbac import require_roles
from utils.audit import log_event
from utils.checkout import pending_payment_for
from utils.reconcile import apply_outcome, refresh_from_provider

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _booking_from_body(data):
    booking_id = data.get("booking_id")
    if not booking_id:
        return None, (jsonify(error="booking_id required"), 400)
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        return None, (jsonify(error="booking_id must be an integer"), 400)
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return None, (jsonify(error="Booking not found"), 404)
    return booking, None


# ---------- KASIR/ADMIN: open a gateway checkout for a customer ----------
@admin_bp.post("/payments/initiate")
@require_roles("KASIR", "ADMIN")
def initiate_payment():
    data = request.get_json(silent=True) or {}
    booking, failure = _booking_from_body(data)
    if failure:
        return failure

    payment_method = (data.get("payment_method") or "online").strip()
    return start_checkout(booking, payment_method)


# ---------- KASIR/ADMIN: record a front-desk payment ----------
@admin_bp.post("/payments/manual")
@require_roles("KASIR", "ADMIN")
def record_manual_payment():
    data = request.get_json(silent=True) or {}
    booking, failure = _booking_from_body(data)
    if failure:
        return failure

    payment_method = (data.get("payment_method") or "cash").strip().lower()
    if payment_method not in MANUAL_METHODS:
        return jsonify(error=f"payment_method must be one of {', '.join(MANUAL_METHODS)}"), 400

    if booking.status != "pending":
        return jsonify(error="Booking already processed"), 400

    in_flight = pending_payment_for(booking.id)
    if in_flight:
        return jsonify(error="An online payment is still pending for this booking",
                       payment_id=in_flight.id), 409

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=booking.total_amount,
        payment_method=payment_method,
        payment_gateway="manual",
        status=PaymentStatus.PENDING.value,
        external_id=generate_order_id("MANUAL"),
    )
    db.session.add(payment)
    db.session.flush()
    log_event("MANUAL_PAYMENT_RECORDED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"booking_id": booking.id, "payment_method": payment_method}, commit=False)
    db.session.commit()

    result = apply_outcome(payment, Outcome.PAID, source="manual",
                           evidence={"recorded_by": g.user.id, "payment_method": payment_method})
    payment = db.session.get(Payment, payment.id)
    return jsonify(success=True, changed=result.changed, payment=payment.to_dict(include_booking=True)), 201


# ---------- KASIR/ADMIN: ask the provider about a payment ----------
@admin_bp.post("/payments/<int:payment_id>/check")
@require_roles("KASIR", "ADMIN")
def check_payment(payment_id: int):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify(error="Payment not found"), 404

    try:
        result = refresh_from_provider(payment, get_registry(), source="staff_check")
    except GatewayError as exc:
        logger.error("Staff status check for payment %s failed: %s", payment_id, exc)
        return jsonify(error=GENERIC_FAILURE), 502

    payment = db.session.get(Payment, payment_id)
    return jsonify(success=True, reconcile=result.to_dict(), payment=payment.to_dict(include_booking=True)), 200


# ---------- KASIR/ADMIN: list payments ----------
@admin_bp.get("/payments")
@require_roles("KASIR", "ADMIN")
def list_payments():
    status = request.args.get("status")
    gateway = request.args.get("gateway")
    limit = max(1, min(request.args.get("limit", default=50, type=int) or 50, 200))

    q = Payment.query
    if status:
        if status not in [s.value for s in PaymentStatus]:
            return jsonify(error="Unknown status"), 400
        q = q.filter_by(status=status)
    if gateway:
        if gateway not in PAYMENT_GATEWAYS:
            return jsonify(error="Unknown gateway"), 400
        q = q.filter_by(payment_gateway=gateway)

    rows = q.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit).all()
    return jsonify([p.to_dict(include_booking=True) for p in rows]), 200
