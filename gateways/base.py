import enum
import secrets
import time
from decimal import Decimal


class GatewayError(Exception):
    """The provider could not be reached or answered with something unusable."""

    def __init__(self, message, status_code=None, response=None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class GatewayNotConfigured(GatewayError):
    pass


class Outcome(enum.Enum):
    PAID = "paid"
    FAILED = "failed"
    NO_CHANGE = "no_change"
    # provider vocabulary we have no entry for
    UNMAPPED = "unmapped"

    @property
    def is_terminal(self) -> bool:
        return self in (Outcome.PAID, Outcome.FAILED)


class Customer:
    def __init__(self, id, name, email, phone=None):
        self.id = str(id)
        self.name = name
        self.email = email
        self.phone = phone

    @classmethod
    def from_user(cls, user):
        return cls(
            id=user.id,
            name=user.full_name or "Customer",
            email=user.email,
            phone=user.phone_number,
        )


class CheckoutSession:
    def __init__(self, order_id, redirect_url, token=None, session_id=None, raw=None):
        self.order_id = order_id
        self.redirect_url = redirect_url
        self.token = token
        self.session_id = session_id
        self.raw = raw or {}


class StatusReport:
    """Result of asking the provider about one order (pull path)."""

    def __init__(self, order_id, provider_status, outcome, gross_amount=None, raw=None):
        self.order_id = order_id
        self.provider_status = provider_status
        self.outcome = outcome
        self.gross_amount = gross_amount
        self.raw = raw or {}


def generate_order_id(prefix="BOOKING") -> str:
    # epoch millis alone collides under concurrent requests
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def validate_checkout(amount, customer):
    if amount is None or Decimal(str(amount)) <= 0:
        raise ValueError("Amount must be greater than 0")
    if not customer or not customer.id or not customer.name:
        raise ValueError("Customer id and name are required")
    if not customer.email:
        raise ValueError("Customer email is required")


def whole_amount(amount) -> int:
    # IDR has no minor unit; both providers expect an integer gross amount
    return int(Decimal(str(amount)).quantize(Decimal("1")))
