from gateways.base import GatewayError

MANUAL_METHODS = ("cash", "debit", "credit", "qris_edc", "transfer")


class ManualGateway:
    """Payments taken at the front desk; staff confirmation is the settlement."""

    name = "manual"
    configured = True

    def create_session(self, order_id, amount, customer, callbacks=None):
        raise GatewayError("Manual payments have no hosted checkout")

    def fetch_status(self, order_id):
        raise GatewayError("Manual payments cannot be polled")
