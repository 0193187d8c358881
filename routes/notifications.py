import logging

from flask import Blueprint, request, jsonify
from sqlalchemy.exc import SQLAlchemyError

from gateways import DokuNotification, get_registry
from models import db
from models.payment import Payment
from utils.audit import log_event
from utils.reconcile import apply_outcome

logger = logging.getLogger(__name__)

# Called server-to-server by the providers: no user session, the signature is the only check
notifications_bp = Blueprint("notifications", __name__)


def _find_payment(order_id, gateway):
    if not order_id:
        return None
    return Payment.query.filter_by(external_id=str(order_id), payment_gateway=gateway).first()


@notifications_bp.post("/payments/notification")
def midtrans_notification():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify(error="Invalid JSON body"), 400

    client = get_registry().get("midtrans")
    order_id = payload.get("order_id")

    if not client.verify_notification(payload):
        logger.warning("Rejected Midtrans notification with bad signature for order %s", order_id)
        log_event("WEBHOOK_BAD_SIGNATURE", entity="payment", metadata={"gateway": "midtrans", "order_id": order_id})
        return jsonify(error="Invalid signature"), 403

    payment = _find_payment(order_id, "midtrans")
    if not payment:
        logger.warning("Midtrans notification for unknown order %s", order_id)
        log_event("WEBHOOK_UNKNOWN_ORDER", metadata={"gateway": "midtrans", "order_id": order_id})
        return jsonify(error="Payment not found"), 404

    try:
        result = apply_outcome(
            payment,
            client.notification_outcome(payload),
            source="midtrans_webhook",
            evidence=payload,
            gross_amount=payload.get("gross_amount"),
            message=payload.get("status_message"),
        )
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to apply Midtrans notification for order %s", order_id)
        return jsonify(error="Internal server error"), 500

    # acknowledge whatever we mapped, or Midtrans keeps retrying
    return jsonify(message="OK", payment_id=result.payment_id, changed=result.changed), 200


@notifications_bp.post("/webhooks/doku")
def doku_notification():
    raw_body = request.get_data(as_text=True)
    payload = request.get_json(force=True, silent=True) if raw_body else {}
    if not isinstance(payload, dict):
        return jsonify(error="Invalid JSON body"), 400

    client = get_registry().get("doku")
    if not client.verify_notification(request.headers, raw_body):
        logger.warning("Rejected DOKU notification with bad signature (Request-Id %s)",
                       request.headers.get("Request-Id"))
        log_event("WEBHOOK_BAD_SIGNATURE", entity="payment",
                  metadata={"gateway": "doku", "request_id": request.headers.get("Request-Id")})
        return jsonify(error="Invalid signature"), 401

    notification = DokuNotification(payload)
    if not notification.invoice_number:
        return jsonify(error="Invalid notification data - missing invoice number"), 400

    payment = _find_payment(notification.invoice_number, "doku")
    if not payment:
        logger.warning("DOKU notification for unknown invoice %s", notification.invoice_number)
        log_event("WEBHOOK_UNKNOWN_ORDER", metadata={"gateway": "doku", "order_id": notification.invoice_number})
        return jsonify(error="Payment not found"), 404

    try:
        result = apply_outcome(
            payment,
            notification.outcome,
            source="doku_webhook",
            evidence=payload,
            gross_amount=notification.amount,
            message=notification.message,
        )
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to apply DOKU notification for invoice %s", notification.invoice_number)
        return jsonify(error="Internal server error"), 500

    return jsonify(
        success=True,
        message="Notification processed successfully",
        payment_id=result.payment_id,
        changed=result.changed,
    ), 200
