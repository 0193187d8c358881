import pytest

from gateways import Outcome
from gateways.doku import DokuNotification
from gateways.status_map import doku_outcome, midtrans_outcome


@pytest.mark.parametrize("status,outcome", [
    ("capture", Outcome.PAID),
    ("settlement", Outcome.PAID),
    ("deny", Outcome.FAILED),
    ("cancel", Outcome.FAILED),
    ("expire", Outcome.FAILED),
    ("pending", Outcome.NO_CHANGE),
    ("refund", Outcome.NO_CHANGE),
    ("something_new", Outcome.UNMAPPED),
    (None, Outcome.UNMAPPED),
])
def test_midtrans_vocabulary(status, outcome):
    assert midtrans_outcome(status) is outcome


def test_midtrans_challenged_capture_waits_for_review():
    assert midtrans_outcome("capture", "challenge") is Outcome.NO_CHANGE
    assert midtrans_outcome("capture", "accept") is Outcome.PAID


def test_doku_event_takes_precedence_over_status():
    assert doku_outcome("payment.expired", "SUCCESS") is Outcome.FAILED
    assert doku_outcome("PAYMENT_FINISHED", None) is Outcome.PAID


def test_doku_status_fallback_is_case_insensitive():
    assert doku_outcome(None, "success") is Outcome.PAID
    assert doku_outcome("unknown.event", "EXPIRED") is Outcome.FAILED
    assert doku_outcome(None, "CHALLENGE") is Outcome.NO_CHANGE
    assert doku_outcome(None, "REVERSED") is Outcome.UNMAPPED


def test_doku_notification_reads_nested_fields():
    note = DokuNotification({
        "order": {"invoice_number": "BOOKING-9", "amount": 150000},
        "transaction": {"status": "SUCCESS"},
    })
    assert note.invoice_number == "BOOKING-9"
    assert note.amount == 150000
    assert note.outcome is Outcome.PAID

    flat = DokuNotification({"invoice_number": "BOOKING-10", "transaction_status": "FAILED"})
    assert flat.invoice_number == "BOOKING-10"
    assert flat.outcome is Outcome.FAILED
