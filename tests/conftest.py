import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app import create_app
from models import db
from utils.seed import seed_roles

from helpers import (
    CLIENT_KEY,
    DOKU_CLIENT_ID,
    DOKU_SECRET_KEY,
    SERVER_KEY,
    FakeMidtrans,
    make_booking,
    make_user,
)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SEED_ROLES": False,
        "PAYMENT_GATEWAY": "midtrans",
        "MIDTRANS_SERVER_KEY": SERVER_KEY,
        "MIDTRANS_CLIENT_KEY": CLIENT_KEY,
        "DOKU_CLIENT_ID": DOKU_CLIENT_ID,
        "DOKU_SECRET_KEY": DOKU_SECRET_KEY,
        "LOG_LEVEL": "DEBUG",
    })
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def midtrans(app):
    registry = app.extensions["gateways"]
    fake = FakeMidtrans(registry.settings.midtrans)
    registry.clients["midtrans"] = fake
    return fake


@pytest.fixture
def customer(app):
    return make_user("sari@example.com", roles=("CUSTOMER",))


@pytest.fixture
def other_customer(app):
    return make_user("budi@example.com", full_name="Budi", roles=("CUSTOMER",))


@pytest.fixture
def kasir(app):
    return make_user("kasir@example.com", full_name="Kasir", roles=("KASIR",))


@pytest.fixture
def booking(customer):
    return make_booking(customer, total_amount="150000")
