import logging

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
from gateways.status_map import midtrans_outcome
from security.signatures import verify_midtrans_signature

logger = logging.getLogger(__name__)

ENABLED_PAYMENTS = [
    "credit_card",
    "bca_va",
    "bni_va",
    "bri_va",
    "qris",
    "gopay",
    "shopeepay",
    "cstore",
]


class MidtransClient:
    name = "midtrans"

    def __init__(self, settings, http=None):
        self.settings = settings
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return self.settings.configured

    def _auth(self):
        if not self.settings.server_key:
            raise GatewayNotConfigured("Midtrans server key is not configured")
        # Midtrans uses the server key as the basic-auth username with an empty password
        return (self.settings.server_key, "")

    def _request(self, method, url, **kwargs):
        try:
            resp = self.http.request(
                method,
                url,
                auth=self._auth(),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.settings.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error("Midtrans %s %s failed: %s", method, url, exc)
            raise GatewayError(f"Midtrans unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}

        if resp.status_code >= 400:
            messages = data.get("error_messages") or [data.get("status_message") or resp.reason]
            logger.error("Midtrans %s %s returned %s: %s", method, url, resp.status_code, messages)
            raise GatewayError(
                f"Midtrans API error: {messages[0] if messages else resp.status_code}",
                status_code=resp.status_code,
                response=data,
            )
        return data

    def create_session(self, order_id, amount, customer, callbacks=None) -> CheckoutSession:
        validate_checkout(amount, customer)

        parameter = {
            "transaction_details": {
                "order_id": order_id,
                "gross_amount": whole_amount(amount),
            },
            "customer_details": {
                "first_name": customer.name,
                "email": customer.email,
                "phone": customer.phone or "",
            },
            "credit_card": {"secure": True},
            "enabled_payments": ENABLED_PAYMENTS,
            "expiry": {"unit": "minutes", "duration": self.settings.expiry_minutes},
        }
        if callbacks:
            parameter["callbacks"] = {
                "finish": callbacks.get("success"),
                "error": callbacks.get("error"),
                "pending": callbacks.get("pending"),
            }

        logger.info("Creating Midtrans transaction order_id=%s amount=%s", order_id, amount)
        data = self._request("POST", self.settings.snap_url, json=parameter)

        token = data.get("token")
        redirect_url = data.get("redirect_url")
        if not token or not redirect_url:
            raise GatewayError("Invalid response format from Midtrans", response=data)

        return CheckoutSession(order_id=order_id, redirect_url=redirect_url, token=token,
                               raw={"token": token, "redirect_url": redirect_url})

    def fetch_status(self, order_id) -> StatusReport:
        url = f"{self.settings.api_url}/v2/{order_id}/status"
        data = self._request("GET", url)

        # the status API answers HTTP 200 with status_code "404" for orders it never saw
        if str(data.get("status_code")) == "404":
            return StatusReport(order_id, None, Outcome.NO_CHANGE, raw=data)

        provider_status = data.get("transaction_status")
        return StatusReport(
            order_id=order_id,
            provider_status=provider_status,
            outcome=midtrans_outcome(provider_status, data.get("fraud_status")),
            gross_amount=data.get("gross_amount"),
            raw=data,
        )

    def verify_notification(self, payload) -> bool:
        return verify_midtrans_signature(payload, self.settings.server_key)

    def notification_outcome(self, payload) -> Outcome:
        return midtrans_outcome(payload.get("transaction_status"), payload.get("fraud_status"))
