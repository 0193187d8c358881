from datetime import datetime

from models import db
from models.booking import Booking
from models.slot import BookingSlot

from helpers import auth, reload


def _slot(available=True):
    slot = BookingSlot(start_time=datetime(2026, 12, 1, 9, 0), end_time=datetime(2026, 12, 1, 9, 30),
                       is_available=available)
    db.session.add(slot)
    db.session.commit()
    return slot


def test_create_booking_starts_pending(client, customer):
    slot = _slot()

    resp = client.post("/bookings", json={"slot_id": slot.id, "type": "treatment", "total_amount": 150000},
                       headers=auth(customer))

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["status"] == "pending"
    assert data["total_amount"] == "150000.00"
    assert reload(Booking, data["id"]).user_id == customer.id


def test_create_booking_validation(client, customer):
    slot = _slot()

    bad_amount = client.post("/bookings", json={"slot_id": slot.id, "total_amount": -5}, headers=auth(customer))
    bad_type = client.post("/bookings", json={"slot_id": slot.id, "type": "massage", "total_amount": 10},
                           headers=auth(customer))
    anonymous = client.post("/bookings", json={"slot_id": slot.id, "total_amount": 10})

    assert bad_amount.status_code == 400
    assert bad_type.status_code == 400
    assert anonymous.status_code == 401


def test_non_numeric_slot_id_is_400(client, customer):
    resp = client.post("/bookings", json={"slot_id": "abc", "total_amount": 10}, headers=auth(customer))
    assert resp.status_code == 400


def test_unavailable_slot_is_404(client, customer):
    slot = _slot(available=False)
    resp = client.post("/bookings", json={"slot_id": slot.id, "total_amount": 10}, headers=auth(customer))
    assert resp.status_code == 404


def test_my_bookings_lists_only_mine(client, customer, other_customer, booking):
    mine = client.get("/bookings/me", headers=auth(customer)).get_json()
    theirs = client.get("/bookings/me", headers=auth(other_customer)).get_json()

    assert [b["id"] for b in mine] == [booking.id]
    assert theirs == []


def test_my_bookings_status_filter(client, customer, booking):
    assert client.get("/bookings/me?status=confirmed", headers=auth(customer)).get_json() == []
    assert client.get("/bookings/me?status=archived", headers=auth(customer)).status_code == 400


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}
