import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from gateways import Customer, GatewayError, generate_order_id
from models import db
from models.payment import Payment, PaymentStatus
from models.user import User
from utils.audit import log_event
from utils.reconcile import POLLABLE_GATEWAYS, refresh_from_provider

logger = logging.getLogger(__name__)


def pending_payment_for(booking_id):
    return Payment.query.filter_by(booking_id=booking_id, status=PaymentStatus.PENDING.value).first()


def _session_may_have_expired(payment, expiry_minutes, now=None) -> bool:
    if payment.payment_gateway not in POLLABLE_GATEWAYS:
        return False
    return payment.created_at <= (now or datetime.utcnow()) - timedelta(minutes=expiry_minutes)


def open_checkout(booking, payment_method, registry, actor_id):
    """
    Open a hosted checkout for ``booking`` and persist its Payment.

    Returns ``(payment, reused)``. The Payment row is written only after the
    provider hands back a session, so a provider failure leaves nothing behind.
    An in-flight pending payment for the booking is returned instead of a new one,
    unless it outlived the provider session and the provider reports it failed.
    """
    existing = pending_payment_for(booking.id)
    if existing and _session_may_have_expired(existing, registry.settings.expiry_minutes):
        # the hosted page may be dead; let the provider settle it before handing it out again
        try:
            result = refresh_from_provider(existing, registry, source="checkout")
            logger.info("Stale payment %s rechecked before checkout: %s",
                        existing.id, result.reason or result.outcome.value)
        except GatewayError as exc:
            logger.warning("Could not recheck stale payment %s: %s", existing.id, exc)
        if existing.status == PaymentStatus.PAID.value:
            return existing, True
        if existing.status == PaymentStatus.FAILED.value:
            existing = None

    if existing:
        log_event("PAYMENT_REUSED", user_id=actor_id, entity="payment", entity_id=existing.id,
                  metadata={"booking_id": booking.id})
        return existing, True

    client = registry.default()
    owner = db.session.get(User, booking.user_id)
    order_id = generate_order_id()

    checkout = client.create_session(
        order_id,
        booking.total_amount,
        Customer.from_user(owner),
        registry.callback_urls(),
    )

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=booking.total_amount,
        payment_method=payment_method,
        payment_gateway=client.name,
        status=PaymentStatus.PENDING.value,
        external_id=checkout.order_id,
        redirect_url=checkout.redirect_url,
        token=checkout.token,
        session_id=checkout.session_id,
        gateway_response=checkout.raw,
    )
    db.session.add(payment)
    try:
        db.session.flush()
        log_event("PAYMENT_SESSION_CREATED", user_id=actor_id, entity="payment", entity_id=payment.id,
                  metadata={"order_id": checkout.order_id, "gateway": client.name}, commit=False)
        db.session.commit()
    except IntegrityError:
        # a concurrent request for the same booking committed its pending payment first
        db.session.rollback()
        winner = pending_payment_for(booking.id)
        if winner is None:
            raise
        logger.warning("Discarding provider session %s; booking %s already has pending payment %s",
                       checkout.order_id, booking.id, winner.id)
        return winner, True

    return payment, False
