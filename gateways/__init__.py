from flask import current_app

from gateways.base import (
    CheckoutSession,
    Customer,
    GatewayError,
    GatewayNotConfigured,
    Outcome,
    StatusReport,
    generate_order_id,
)
from gateways.doku import DokuClient, DokuNotification
from gateways.manual import ManualGateway
from gateways.midtrans import MidtransClient


class GatewayRegistry:
    def __init__(self, clients, default_gateway="midtrans", settings=None):
        self.clients = dict(clients)
        self.default_gateway = default_gateway
        self.settings = settings

    @classmethod
    def from_settings(cls, settings):
        return cls(
            {
                "midtrans": MidtransClient(settings.midtrans),
                "doku": DokuClient(settings.doku),
                "manual": ManualGateway(),
            },
            default_gateway=settings.default_gateway,
            settings=settings,
        )

    def get(self, name=None):
        name = (name or self.default_gateway).lower()
        client = self.clients.get(name)
        if client is None:
            raise GatewayNotConfigured(f"Unknown payment gateway: {name}")
        return client

    def default(self):
        client = self.get(self.default_gateway)
        if not client.configured:
            raise GatewayNotConfigured(
                f"Payment gateway {self.default_gateway.upper()} is not configured"
            )
        return client

    def callback_urls(self):
        return self.settings.callback_urls() if self.settings else {}


def get_registry(app=None) -> GatewayRegistry:
    return (app or current_app).extensions["gateways"]
