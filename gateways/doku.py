import json
import logging
import uuid
from datetime import datetime, timezone

import requests

from gateways.base import (
    CheckoutSession,
    GatewayError,
    GatewayNotConfigured,
    Outcome,
    StatusReport,
    validate_checkout,
    whole_amount,
)
from gateways.status_map import doku_outcome
from security.signatures import doku_signature, verify_doku_signature

logger = logging.getLogger(__name__)

CHECKOUT_TARGET = "/checkout/v1/payment"
STATUS_TARGET = "/orders/v1/status/{order_id}"

PAYMENT_METHOD_TYPES = [
    "VIRTUAL_ACCOUNT_BCA",
    "VIRTUAL_ACCOUNT_BANK_MANDIRI",
    "VIRTUAL_ACCOUNT_BRI",
    "VIRTUAL_ACCOUNT_BNI",
    "CREDIT_CARD",
    "QRIS",
    "EMONEY_OVO",
    "EMONEY_SHOPEEPAY",
    "EMONEY_DANA",
]


def utc_timestamp() -> str:
    # DOKU rejects fractional seconds: YYYY-MM-DDTHH:MM:SSZ
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class DokuNotification:
    """Fields pulled out of a DOKU notification, which nests them inconsistently."""

    def __init__(self, payload):
        order = payload.get("order") or {}
        transaction = payload.get("transaction") or {}
        self.invoice_number = (
            order.get("invoice_number")
            or payload.get("invoice_number")
            or transaction.get("invoice_number")
        )
        self.transaction_status = (
            transaction.get("status")
            or payload.get("status")
            or payload.get("transaction_status")
        )
        self.amount = order.get("amount") or transaction.get("amount") or payload.get("amount")
        self.event = payload.get("event") or payload.get("type")
        self.message = transaction.get("message") or payload.get("error_message")

    @property
    def outcome(self) -> Outcome:
        return doku_outcome(self.event, self.transaction_status)


class DokuClient:
    name = "doku"

    def __init__(self, settings, http=None):
        self.settings = settings
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return self.settings.configured

    def _signed_headers(self, target, body=""):
        if not self.configured:
            raise GatewayNotConfigured("DOKU client id / secret key are not configured")
        request_id = str(uuid.uuid4())
        timestamp = utc_timestamp()
        return {
            "Content-Type": "application/json",
            "Client-Id": self.settings.client_id,
            "Request-Id": request_id,
            "Request-Timestamp": timestamp,
            "Signature": doku_signature(
                self.settings.client_id, request_id, timestamp, target,
                self.settings.secret_key, body,
            ),
        }

    def _request(self, method, target, body=""):
        headers = self._signed_headers(target, body)
        url = self.settings.base_url + target
        try:
            resp = self.http.request(
                method,
                url,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            logger.error("DOKU %s %s failed: %s", method, target, exc)
            raise GatewayError(f"DOKU unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {"error": resp.text}

        if resp.status_code >= 400:
            error = data.get("error")
            message = (
                (error.get("message") if isinstance(error, dict) else error)
                or (data.get("error_messages") or [None])[0]
                or resp.reason
            )
            logger.error("DOKU %s %s returned %s: %s", method, target, resp.status_code, message)
            raise GatewayError(f"DOKU API error: {message}", status_code=resp.status_code, response=data)
        return data

    def create_session(self, order_id, amount, customer, callbacks=None) -> CheckoutSession:
        validate_checkout(amount, customer)
        if not customer.phone:
            raise ValueError("Customer phone is required for DOKU checkout")

        callbacks = callbacks or {}
        request_body = {
            "order": {
                "amount": whole_amount(amount),
                "invoice_number": order_id,
                "currency": "IDR",
                "callback_url": callbacks.get("success"),
                "callback_url_cancel": callbacks.get("error"),
                "callback_url_result": callbacks.get("success"),
                "language": "ID",
                "auto_redirect": True,
                "disable_retry_payment": False,
            },
            "payment": {
                "payment_due_date": self.settings.expiry_minutes,
                "payment_method_types": PAYMENT_METHOD_TYPES,
            },
            "customer": {
                "id": customer.id,
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
                "country": "ID",
            },
        }
        # signed bytes and sent bytes must be identical
        body = json.dumps(request_body, separators=(",", ":"))

        logger.info("Creating DOKU checkout invoice=%s amount=%s", order_id, amount)
        data = self._request("POST", CHECKOUT_TARGET, body)

        response = data.get("response") or {}
        payment = response.get("payment")
        if not payment or not payment.get("url"):
            raise GatewayError("Invalid response format from DOKU API", response=data)
        order = response.get("order") or {}

        return CheckoutSession(
            order_id=order.get("invoice_number") or order_id,
            redirect_url=payment.get("url"),
            token=payment.get("token_id"),
            session_id=order.get("session_id"),
            raw={
                "token": payment.get("token_id"),
                "redirect_url": payment.get("url"),
                "session_id": order.get("session_id"),
            },
        )

    def fetch_status(self, order_id) -> StatusReport:
        data = self._request("GET", STATUS_TARGET.format(order_id=order_id))
        transaction = data.get("transaction") or {}
        provider_status = transaction.get("status")
        return StatusReport(
            order_id=order_id,
            provider_status=provider_status,
            outcome=doku_outcome(None, provider_status),
            gross_amount=(data.get("order") or {}).get("amount"),
            raw=data,
        )

    def verify_notification(self, headers, raw_body: str) -> bool:
        return verify_doku_signature(
            headers,
            raw_body,
            self.settings.notification_target,
            self.settings.client_id,
            self.settings.secret_key,
        )
