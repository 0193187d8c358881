import logging

from flask import Blueprint, request, jsonify, g

from gateways import GatewayError, GatewayNotConfigured, get_registry
from models import db
from models.booking import Booking
from models.payment import Payment, PaymentStatus
from utils.auth_context import login_required, is_staff
from utils.audit import log_event
from utils.checkout import open_checkout
from utils.reconcile import refresh_from_provider

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")

GENERIC_FAILURE = "Payment processing failed"


def _visible_to_current_user(owner_id) -> bool:
    return owner_id == g.user.id or is_staff(g.user)


def _checkout_message(payment, reused):
    if not reused:
        return "Payment initiated"
    if payment.status == PaymentStatus.PAID.value:
        return "Payment already completed"
    return "Existing payment in progress"


def checkout_response(payment, reused):
    body = {
        "success": True,
        "message": _checkout_message(payment, reused),
        "payment_id": payment.id,
        "payment_token": payment.token,
        "redirect_url": payment.redirect_url,
        "gateway": payment.payment_gateway,
        "reused": reused,
    }
    return jsonify(body), (200 if reused else 201)


def start_checkout(booking, payment_method):
    """Shared by the customer and cashier entry points."""
    if booking.status != "pending":
        return jsonify(error="Booking already processed"), 400

    try:
        payment, reused = open_checkout(booking, payment_method, get_registry(), actor_id=g.user.id)
    except GatewayNotConfigured as exc:
        logger.error("Checkout for booking %s refused: %s", booking.id, exc)
        return jsonify(error="Payment gateway is not configured"), 503
    except ValueError as exc:
        return jsonify(error=str(exc)), 400
    except GatewayError as exc:
        db.session.rollback()
        logger.error("Checkout for booking %s failed: %s", booking.id, exc)
        log_event("PAYMENT_SESSION_FAILED", user_id=g.user.id, entity="booking", entity_id=booking.id,
                  metadata={"error": str(exc)})
        return jsonify(error=GENERIC_FAILURE), 502

    return checkout_response(payment, reused)


# ---------- CUSTOMERS: start a payment ----------
@payments_bp.post("/create")
@login_required
def create_payment():
    data = request.get_json(silent=True) or {}
    booking_id = data.get("booking_id")
    payment_method = (data.get("payment_method") or "").strip()

    if not booking_id or not payment_method:
        return jsonify(error="booking_id and payment_method are required"), 400

    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        return jsonify(error="booking_id must be an integer"), 400

    booking = db.session.get(Booking, booking_id)
    if not booking or booking.user_id != g.user.id:
        return jsonify(error="Booking not found"), 404

    return start_checkout(booking, payment_method)


# ---------- CUSTOMERS: poll a payment ----------
@payments_bp.get("/<int:payment_id>/status")
@login_required
def payment_status(payment_id: int):
    payment = db.session.get(Payment, payment_id)
    if not payment or not _visible_to_current_user(payment.user_id):
        return jsonify(error="Payment not found"), 404

    body = {"success": True}
    if request.args.get("refresh") in ("1", "true"):
        try:
            result = refresh_from_provider(payment, get_registry(), source="client_poll")
            body["reconcile"] = result.to_dict()
        except GatewayError as exc:
            # the poll still answers with what we know
            logger.warning("Status refresh for payment %s failed: %s", payment_id, exc)
            body["refresh_error"] = GENERIC_FAILURE
        payment = db.session.get(Payment, payment_id)

    body["payment"] = payment.to_dict(include_booking=True)
    return jsonify(body), 200


@payments_bp.get("/find")
@login_required
def find_payment():
    booking_id = request.args.get("booking_id", type=int)
    if not booking_id:
        return jsonify(error="booking_id required"), 400

    booking = db.session.get(Booking, booking_id)
    if not booking or not _visible_to_current_user(booking.user_id):
        return jsonify(error="Booking not found"), 404

    payment = (
        Payment.query
        .filter_by(booking_id=booking.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )
    if not payment:
        return jsonify(error="Payment not found"), 404

    return jsonify(success=True, payment=payment.to_dict(include_booking=True)), 200
