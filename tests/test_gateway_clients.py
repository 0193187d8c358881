import json
import re

import pytest
import requests

from config import DokuSettings, MidtransSettings
from gateways import Customer, GatewayError, GatewayNotConfigured, Outcome, generate_order_id
from gateways.doku import DokuClient
from gateways.midtrans import MidtransClient
from security.signatures import verify_doku_signature

from helpers import CLIENT_KEY, DOKU_CLIENT_ID, DOKU_SECRET_KEY, SERVER_KEY, FakeHttp, FakeResponse

CUSTOMER = Customer(id=7, name="Sari Dewi", email="sari@example.com", phone="081234567890")


def test_order_ids_are_unique_and_prefixed():
    ids = {generate_order_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(re.fullmatch(r"BOOKING-\d{13}-[0-9a-f]{8}", i) for i in ids)


def _midtrans(*responses):
    http = FakeHttp(*responses)
    return MidtransClient(MidtransSettings(SERVER_KEY, CLIENT_KEY, expiry_minutes=60, timeout=5), http=http), http


def test_midtrans_create_session_posts_snap_request():
    client, http = _midtrans(FakeResponse(201, {"token": "tok", "redirect_url": "https://snap/redirect"}))

    session = client.create_session("BOOKING-1", "150000.00", CUSTOMER, {"success": "https://site/ok"})

    assert session.token == "tok"
    assert session.redirect_url == "https://snap/redirect"
    call = http.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == MidtransSettings.SANDBOX_SNAP_URL
    assert call["auth"] == (SERVER_KEY, "")
    assert call["timeout"] == 5
    sent = call["json"]
    assert sent["transaction_details"] == {"order_id": "BOOKING-1", "gross_amount": 150000}
    assert sent["expiry"] == {"unit": "minutes", "duration": 60}
    assert sent["callbacks"]["finish"] == "https://site/ok"


def test_midtrans_rejected_request_raises_gateway_error():
    client, _ = _midtrans(FakeResponse(401, {"error_messages": ["Access denied due to unauthorized transaction"]}))

    with pytest.raises(GatewayError) as exc:
        client.create_session("BOOKING-1", 150000, CUSTOMER)

    assert exc.value.status_code == 401
    assert "Access denied" in str(exc.value)


def test_midtrans_network_error_raises_gateway_error():
    client, _ = _midtrans(requests.ConnectionError("connection refused"))

    with pytest.raises(GatewayError):
        client.create_session("BOOKING-1", 150000, CUSTOMER)


def test_midtrans_rejects_non_positive_amount_before_calling():
    client, http = _midtrans()

    with pytest.raises(ValueError):
        client.create_session("BOOKING-1", 0, CUSTOMER)
    assert http.calls == []


def test_midtrans_fetch_status_maps_vocabulary():
    client, http = _midtrans(FakeResponse(200, {
        "status_code": "200",
        "transaction_status": "settlement",
        "gross_amount": "150000.00",
    }))

    report = client.fetch_status("BOOKING-1")

    assert report.outcome is Outcome.PAID
    assert report.gross_amount == "150000.00"
    assert http.calls[0]["url"].endswith("/v2/BOOKING-1/status")


def test_midtrans_fetch_status_unknown_order_is_no_change():
    client, _ = _midtrans(FakeResponse(200, {"status_code": "404", "status_message": "Transaction doesn't exist."}))
    assert client.fetch_status("BOOKING-X").outcome is Outcome.NO_CHANGE


def test_midtrans_without_key_is_not_configured():
    client = MidtransClient(MidtransSettings(None), http=FakeHttp())
    with pytest.raises(GatewayNotConfigured):
        client.fetch_status("BOOKING-1")


def _doku(*responses):
    http = FakeHttp(*responses)
    settings = DokuSettings(DOKU_CLIENT_ID, DOKU_SECRET_KEY, expiry_minutes=60, timeout=5)
    return DokuClient(settings, http=http), http


def test_doku_create_session_signs_exact_body():
    client, http = _doku(FakeResponse(200, {"response": {
        "payment": {"url": "https://doku/checkout", "token_id": "dtok"},
        "order": {"invoice_number": "BOOKING-2", "session_id": "sess-1"},
    }}))

    session = client.create_session("BOOKING-2", "150000", CUSTOMER, {"success": "https://site/ok"})

    assert session.redirect_url == "https://doku/checkout"
    assert session.token == "dtok"
    assert session.session_id == "sess-1"

    call = http.calls[0]
    assert call["url"] == DokuSettings.SANDBOX_URL + "/checkout/v1/payment"
    body = call["data"].decode("utf-8")
    assert json.loads(body)["order"]["amount"] == 150000
    assert verify_doku_signature(call["headers"], body, "/checkout/v1/payment", DOKU_CLIENT_ID, DOKU_SECRET_KEY)


def test_doku_unexpected_response_raises():
    client, _ = _doku(FakeResponse(200, {"response": {}}))
    with pytest.raises(GatewayError):
        client.create_session("BOOKING-2", 150000, CUSTOMER)


def test_doku_requires_customer_phone():
    client, http = _doku()
    no_phone = Customer(id=7, name="Sari", email="sari@example.com")
    with pytest.raises(ValueError):
        client.create_session("BOOKING-2", 150000, no_phone)
    assert http.calls == []


def test_doku_fetch_status():
    client, http = _doku(FakeResponse(200, {
        "order": {"invoice_number": "BOOKING-3", "amount": 150000},
        "transaction": {"status": "EXPIRED"},
    }))

    report = client.fetch_status("BOOKING-3")

    assert report.outcome is Outcome.FAILED
    assert http.calls[0]["method"] == "GET"
    assert http.calls[0]["data"] is None
