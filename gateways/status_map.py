"""Provider status vocabularies translated to reconciliation outcomes."""

from gateways.base import Outcome

MIDTRANS_TRANSACTION_STATUS = {
    "capture": Outcome.PAID,
    "settlement": Outcome.PAID,
    "pending": Outcome.NO_CHANGE,
    "authorize": Outcome.NO_CHANGE,
    "deny": Outcome.FAILED,
    "cancel": Outcome.FAILED,
    "expire": Outcome.FAILED,
    "failure": Outcome.FAILED,
    # refunds and chargebacks are settled by staff, not by this flow
    "refund": Outcome.NO_CHANGE,
    "partial_refund": Outcome.NO_CHANGE,
    "chargeback": Outcome.NO_CHANGE,
    "partial_chargeback": Outcome.NO_CHANGE,
}

DOKU_EVENTS = {
    "payment.finished": Outcome.PAID,
    "payment.success": Outcome.PAID,
    "PAYMENT_FINISHED": Outcome.PAID,
    "payment.failed": Outcome.FAILED,
    "PAYMENT_FAILED": Outcome.FAILED,
    "payment.expired": Outcome.FAILED,
    "PAYMENT_EXPIRED": Outcome.FAILED,
}

DOKU_TRANSACTION_STATUS = {
    "SUCCESS": Outcome.PAID,
    "COMPLETED": Outcome.PAID,
    "SETTLEMENT": Outcome.PAID,
    "FAILED": Outcome.FAILED,
    "FAILURE": Outcome.FAILED,
    "DENY": Outcome.FAILED,
    "EXPIRED": Outcome.FAILED,
    "EXPIRE": Outcome.FAILED,
    "PENDING": Outcome.NO_CHANGE,
    "CHALLENGE": Outcome.NO_CHANGE,
}


def midtrans_outcome(transaction_status, fraud_status=None) -> Outcome:
    status = (transaction_status or "").strip().lower()
    outcome = MIDTRANS_TRANSACTION_STATUS.get(status, Outcome.UNMAPPED)
    # a challenged card capture waits for manual review in the Midtrans dashboard
    if status == "capture" and (fraud_status or "").lower() == "challenge":
        return Outcome.NO_CHANGE
    if status == "capture" and (fraud_status or "").lower() == "deny":
        return Outcome.FAILED
    return outcome


def doku_outcome(event=None, transaction_status=None) -> Outcome:
    if event and event in DOKU_EVENTS:
        return DOKU_EVENTS[event]
    status = (transaction_status or "").strip().upper()
    return DOKU_TRANSACTION_STATUS.get(status, Outcome.UNMAPPED)
