import os

# Must be set before the application modules are imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["JWT_SECRET"] = "test_jwt_secret"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hotel_payments.main import app as fastapi_app
from hotel_payments.database import Base, engine_options
from hotel_payments.gateway import PaymentGatewayClient, get_gateway
from hotel_payments.models import Booking, BookingStatus
import hotel_payments.auth
import hotel_payments.routes

KEY_SECRET = "test_key_secret"

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options(SQLALCHEMY_DATABASE_URL))
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def gateway(mocker):
    mock = mocker.Mock(spec=PaymentGatewayClient)
    mock.fetch_refunds_for_payment.return_value = []
    return mock


@pytest.fixture
def client(monkeypatch, gateway):
    monkeypatch.setattr(hotel_payments.routes, "SessionLocal", TestingSessionLocal)
    # Bypass auth verification for tests
    fastapi_app.dependency_overrides[hotel_payments.auth.verify_token] = lambda: {"sub": "admin-1"}
    fastapi_app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def add_booking(db, status=BookingStatus.CONFIRMED, payment_id="pay_1", total_amount="1495",
                reference="BK001234", order_id="order_1"):
    booking = Booking(
        reference=reference,
        total_amount=Decimal(total_amount),
        currency="INR",
        status=status,
        order_id=order_id,
        payment_id=payment_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def gateway_refund(refund_id="rfnd_1", amount=149500, payment_id="pay_1", status="processed",
                   created_at=1700000000, notes=None):
    return {
        "id": refund_id,
        "entity": "refund",
        "amount": amount,
        "currency": "INR",
        "payment_id": payment_id,
        "status": status,
        "created_at": created_at,
        "notes": notes or {"reason": "Booking cancellation"},
    }
