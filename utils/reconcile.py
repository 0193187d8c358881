"""
Payment status reconciliation.

Every path that learns a payment's outcome (gateway webhook, customer poll,
staff check, scheduled sweep) ends in ``apply_outcome``. The transition is a
conditional UPDATE guarded on ``status = 'pending'``, so concurrent
deliveries of the same notification apply at most once and ``paid``/``failed``
are never left.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from gateways.base import GatewayError, Outcome
from models import db
from models.booking import Booking
from models.payment import Payment, PaymentStatus
from utils.audit import log_event

logger = logging.getLogger(__name__)

POLLABLE_GATEWAYS = ("midtrans", "doku")

# booking states a paid payment may confirm; confirmed stays confirmed
CONFIRMABLE_BOOKING_STATUSES = ("pending", "confirmed")


class ReconcileResult:
    def __init__(self, payment_id, outcome, changed, reason=None):
        self.payment_id = payment_id
        self.outcome = outcome
        self.changed = changed
        self.reason = reason

    def to_dict(self):
        return {
            "payment_id": self.payment_id,
            "outcome": self.outcome.value,
            "changed": self.changed,
            "reason": self.reason,
        }


def _amount_matches(expected, reported) -> bool:
    if reported in (None, ""):
        return True
    try:
        return Decimal(str(reported)) == Decimal(str(expected))
    except InvalidOperation:
        return False


def apply_outcome(payment, outcome, source, evidence=None, gross_amount=None, message=None):
    """
    Move ``payment`` to the state ``outcome`` implies, if it is still pending.

    PAID stamps ``paid_at`` and confirms the owning booking in the same
    transaction. FAILED leaves the booking alone so the customer can retry.
    NO_CHANGE and UNMAPPED never write the payment.
    """
    payment_id = payment.id

    if outcome is Outcome.UNMAPPED:
        logger.warning("Unmapped provider status for payment %s via %s", payment_id, source)
        log_event("WEBHOOK_UNMAPPED_STATUS", entity="payment", entity_id=payment_id,
                  metadata={"source": source, "evidence": evidence})
        return ReconcileResult(payment_id, outcome, False, reason="unmapped")

    if not outcome.is_terminal:
        return ReconcileResult(payment_id, outcome, False, reason="no_change")

    if payment.status != PaymentStatus.PENDING.value:
        logger.info("Payment %s already %s; %s from %s ignored",
                    payment_id, payment.status, outcome.value, source)
        return ReconcileResult(payment_id, outcome, False, reason="terminal")

    if outcome is Outcome.PAID and not _amount_matches(payment.amount, gross_amount):
        logger.error("Amount mismatch for payment %s: expected %s, provider reported %s",
                     payment_id, payment.amount, gross_amount)
        log_event("PAYMENT_AMOUNT_MISMATCH", entity="payment", entity_id=payment_id,
                  metadata={"source": source, "expected": str(payment.amount), "reported": gross_amount})
        return ReconcileResult(payment_id, outcome, False, reason="amount_mismatch")

    now = datetime.utcnow()
    values = {"updated_at": now}
    if evidence is not None:
        values["notification_data"] = evidence
    if outcome is Outcome.PAID:
        values["status"] = PaymentStatus.PAID.value
        values["paid_at"] = now
    else:
        values["status"] = PaymentStatus.FAILED.value
        values["error_message"] = (message or f"Payment {outcome.value} via {source}")[:255]

    updated = (
        Payment.query
        .filter(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING.value)
        .update(values, synchronize_session=False)
    )
    if not updated:
        # lost the race to a concurrent delivery
        db.session.rollback()
        logger.info("Payment %s left pending state concurrently; %s from %s ignored",
                    payment_id, outcome.value, source)
        return ReconcileResult(payment_id, outcome, False, reason="terminal")

    if outcome is Outcome.PAID:
        confirmed = (
            Booking.query
            .filter(Booking.id == payment.booking_id,
                    Booking.status.in_(CONFIRMABLE_BOOKING_STATUSES))
            .update({"status": "confirmed", "updated_at": now}, synchronize_session=False)
        )
        if not confirmed:
            logger.warning("Payment %s paid but booking %s is not confirmable",
                           payment_id, payment.booking_id)
            log_event("PAYMENT_BOOKING_NOT_CONFIRMABLE", entity="booking", entity_id=payment.booking_id,
                      metadata={"payment_id": payment_id}, commit=False)

    log_event(
        "PAYMENT_PAID" if outcome is Outcome.PAID else "PAYMENT_FAILED",
        entity="payment",
        entity_id=payment_id,
        metadata={"source": source, "booking_id": payment.booking_id},
        commit=False,
    )
    db.session.commit()

    logger.info("Payment %s -> %s via %s", payment_id, values["status"], source)
    return ReconcileResult(payment_id, outcome, True)


def refresh_from_provider(payment, registry, source):
    """Ask the provider for the order's status and apply it (pull path)."""
    if payment.is_terminal:
        return ReconcileResult(payment.id, Outcome.NO_CHANGE, False, reason="terminal")
    if payment.payment_gateway not in POLLABLE_GATEWAYS or not payment.external_id:
        return ReconcileResult(payment.id, Outcome.NO_CHANGE, False, reason="not_pollable")

    report = registry.get(payment.payment_gateway).fetch_status(payment.external_id)
    return apply_outcome(
        payment,
        report.outcome,
        source=source,
        evidence=report.raw,
        gross_amount=report.gross_amount,
    )


def reconcile_stale_payments(registry, older_than_minutes=15, limit=100, now=None):
    """
    Re-check pending gateway payments that have waited longer than the cutoff.

    One provider failure does not stop the sweep; it is logged and the next
    payment is tried.
    """
    cutoff = (now or datetime.utcnow()) - timedelta(minutes=older_than_minutes)
    stale = (
        Payment.query
        .filter(
            Payment.status == PaymentStatus.PENDING.value,
            Payment.payment_gateway.in_(POLLABLE_GATEWAYS),
            Payment.external_id.isnot(None),
            Payment.created_at <= cutoff,
        )
        .order_by(Payment.created_at.asc())
        .limit(limit)
        .all()
    )

    results = []
    for payment in stale:
        try:
            results.append(refresh_from_provider(payment, registry, source="sweep"))
        except GatewayError as exc:
            logger.warning("Sweep could not check payment %s (%s): %s",
                           payment.id, payment.payment_gateway, exc)
    return results
