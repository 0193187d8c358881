from datetime import datetime, timedelta
from decimal import Decimal

from gateways import CheckoutSession, GatewayError, Outcome, StatusReport
from gateways.midtrans import MidtransClient
from models import db
from models.booking import Booking
from models.payment import Payment
from models.slot import BookingSlot
from models.user import Role, User
from security.signatures import midtrans_signature

SERVER_KEY = "SB-Mid-server-TEST"
CLIENT_KEY = "SB-Mid-client-TEST"
DOKU_CLIENT_ID = "BRN-0001-TEST"
DOKU_SECRET_KEY = "SK-doku-TEST"


class FakeResponse:
    def __init__(self, status_code=200, data=None, text="", reason="OK"):
        self.status_code = status_code
        self._data = data
        self.text = text
        self.reason = reason

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class FakeHttp:
    """Stands in for requests.Session; replays canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


class FakeMidtrans(MidtransClient):
    """Real signature checks, canned checkout and status answers."""

    def __init__(self, settings):
        super().__init__(settings, http=FakeHttp())
        self.sessions = []
        self.statuses = {}
        self.fail_with = None

    def create_session(self, order_id, amount, customer, callbacks=None):
        if self.fail_with:
            raise self.fail_with
        self.sessions.append({"order_id": order_id, "amount": amount, "customer": customer})
        return CheckoutSession(
            order_id=order_id,
            redirect_url=f"https://app.sandbox.midtrans.com/snap/v2/vtweb/{order_id}",
            token=f"tok-{order_id}",
            raw={"token": f"tok-{order_id}"},
        )

    def fetch_status(self, order_id):
        if self.fail_with:
            raise self.fail_with
        provider_status, outcome, gross = self.statuses.get(order_id, ("pending", Outcome.NO_CHANGE, None))
        return StatusReport(order_id, provider_status, outcome, gross_amount=gross,
                            raw={"transaction_status": provider_status})


def make_user(email, full_name="Sari Dewi", phone="081234567890", roles=()):
    user = User(email=email, full_name=full_name, phone_number=phone)
    for name in roles:
        user.roles.append(Role.query.filter_by(name=name).one())
    db.session.add(user)
    db.session.commit()
    return user


def make_booking(user, total_amount="150000", status="pending"):
    start = datetime(2026, 11, 2, 10, 0) + timedelta(hours=BookingSlot.query.count())
    slot = BookingSlot(start_time=start, end_time=start + timedelta(minutes=30))
    db.session.add(slot)
    db.session.flush()
    booking = Booking(
        user_id=user.id,
        slot_id=slot.id,
        type="treatment",
        status=status,
        total_amount=Decimal(total_amount),
    )
    db.session.add(booking)
    db.session.commit()
    return booking


def make_payment(booking, external_id="BOOKING-1-abcd1234", gateway="midtrans",
                 status="pending", created_at=None):
    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=booking.total_amount,
        payment_method="qris",
        payment_gateway=gateway,
        status=status,
        external_id=external_id,
        redirect_url=f"https://pay.example/{external_id}",
    )
    if created_at:
        payment.created_at = created_at
    db.session.add(payment)
    db.session.commit()
    return payment


def reload(model, pk):
    db.session.expire_all()
    return db.session.get(model, pk)


def midtrans_notification(order_id, transaction_status, gross_amount="150000.00",
                          status_code="200", server_key=SERVER_KEY, **extra):
    body = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "signature_key": midtrans_signature(order_id, status_code, gross_amount, server_key),
    }
    body.update(extra)
    return body


def auth(user):
    return {"X-User-Id": str(user.id)}
