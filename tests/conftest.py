import base64
import hashlib
import hmac
import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["PAYMENT_PROVIDER"] = "sandbox"
os.environ["TAX_RATE"] = "0.05"
os.environ["FLAT_SHIPPING_COST"] = "0"
os.environ["BASE_URL"] = "http://testserver"
os.environ["FRONTEND_URL"] = "http://shop.test"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_KEY_HASH"] = hashlib.sha256(b"let-me-in").hexdigest()

import pytest
import razorpay
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from storefront import models  # noqa: F401
from storefront.database import get_session
from storefront.main import app
from storefront.models.product import Product
from storefront.models.user import User
from storefront.routes.webhooks import get_razorpay_gateway, get_sandbox_gateway, get_shiprocket_gateway
from storefront.services import cart_service
from storefront.services.checkout_service import CheckoutService, get_checkout_service
from storefront.services.payments import RazorpayGateway, SandboxGateway, ShiprocketCheckoutGateway
from storefront.services.shipping import MockRateProvider
from storefront.utils.token import create_access_token

RAZORPAY_KEY_ID = "rzp_test_key"
RAZORPAY_KEY_SECRET = "rzp_test_secret"
RAZORPAY_WEBHOOK_SECRET = "whsec_test"
SHIPROCKET_API_SECRET = "sr_secret"

DELIVERY = {
    "name": "Asha Rao",
    "phone": "9876543210",
    "email": "asha@example.com",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def sign_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_base64(secret: str, message: bytes) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()).decode()


class FakeRazorpayOrders:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, data):
        if self.error:
            raise self.error
        self.created.append(data)
        return {"id": f"order_RZP{len(self.created):04d}", "currency": data["currency"], "amount": data["amount"]}


class FakeShiprocketSessions:
    """requests.Session stand-in for the Shiprocket Checkout session API"""

    class Response:
        status_code = 200

        def __init__(self, payload):
            self.payload = payload

        def json(self):
            return self.payload

        def raise_for_status(self):
            pass

    def __init__(self):
        self.created = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.created.append(json)
        session_id = f"sr_sess_{len(self.created):04d}"
        return self.Response({"session_id": session_id, "payment_url": f"https://pay.sr.test/{session_id}"})


class FakeRazorpayClient:
    """Order API stubbed, signature utilities are the real SDK ones"""

    def __init__(self, error=None):
        real = razorpay.Client(auth=(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET))
        self.utility = real.utility
        self.order = FakeRazorpayOrders(error)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(session):
    user = User(first_name="Asha", last_name="Rao", email="asha@example.com", phone="9876543210")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_user(session):
    user = User(first_name="Ravi", last_name="K", email="ravi@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def product(session):
    product = Product(name="Product A", price=100.0, weight_kg=0.4)
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@pytest.fixture
def filled_cart(session, user, product):
    cart_service.add_to_cart(session, user.id, product.id, 2)
    return user


@pytest.fixture
def sandbox_gateway():
    return SandboxGateway(base_url="http://testserver")


@pytest.fixture
def razorpay_gateway():
    return RazorpayGateway(
        key_id=RAZORPAY_KEY_ID,
        key_secret=RAZORPAY_KEY_SECRET,
        webhook_secret=RAZORPAY_WEBHOOK_SECRET,
        client=FakeRazorpayClient(),
    )


@pytest.fixture
def shiprocket_gateway():
    return ShiprocketCheckoutGateway(
        api_key="sr_key",
        api_secret=SHIPROCKET_API_SECRET,
        callback_url="http://testserver/webhooks/shiprocket",
        base_url="https://sr.test",
        http=FakeShiprocketSessions(),
    )


@pytest.fixture
def make_service():
    def _make(gateway, rate_provider=None, tax_rate=0.05, flat_shipping_cost=0.0):
        return CheckoutService(
            gateway=gateway,
            rate_provider=rate_provider or MockRateProvider(),
            tax_rate=tax_rate,
            flat_shipping_cost=flat_shipping_cost,
            pickup_pincode="110001",
        )
    return _make


@pytest.fixture
def service(make_service, sandbox_gateway):
    return make_service(sandbox_gateway)


@pytest.fixture
def client(session, service, sandbox_gateway, razorpay_gateway, shiprocket_gateway):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_checkout_service] = lambda: service
    app.dependency_overrides[get_sandbox_gateway] = lambda: sandbox_gateway
    app.dependency_overrides[get_razorpay_gateway] = lambda: razorpay_gateway
    app.dependency_overrides[get_shiprocket_gateway] = lambda: shiprocket_gateway

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}
