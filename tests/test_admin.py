import pytest

from storefront.constants.order_status import OrderStatus, PaymentStatus, can_transition
from storefront.routes import admin as admin_routes
from storefront.schemas.checkout_schemas import DeliveryInfo
from storefront.main import app
from storefront.services.errors import ShipmentError
from storefront.services.payments import CallbackStatus, PaymentCallback
from storefront.services.order_event_service import list_order_events
from storefront.services.shipping import MockRateProvider, get_rate_provider
from storefront.utils.rate_limit import LoginRateLimiter
from storefront.utils.token import create_access_token

from tests.conftest import DELIVERY


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch):
    limiter = LoginRateLimiter(max_attempts=3, window_seconds=60)
    monkeypatch.setattr(admin_routes, "login_limiter", limiter)
    return limiter


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def order(session, service, filled_cart, user):
    return service.begin_checkout(session, user, DeliveryInfo(**DELIVERY)).order


def test_admin_login(client):
    response = client.post("/admin/login", json={"admin_key": "let-me-in"})

    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_admin_login_wrong_key(client):
    assert client.post("/admin/login", json={"admin_key": "guess"}).status_code == 401


def test_admin_login_rate_limited(client):
    for _ in range(3):
        assert client.post("/admin/login", json={"admin_key": "guess"}).status_code == 401

    blocked = client.post("/admin/login", json={"admin_key": "let-me-in"})

    assert blocked.status_code == 429
    assert int(blocked.headers["retry-after"]) > 0


def test_rate_limit_is_per_client(client):
    for _ in range(3):
        client.post("/admin/login", json={"admin_key": "guess"}, headers={"X-Forwarded-For": "10.0.0.1"})

    response = client.post("/admin/login", json={"admin_key": "let-me-in"}, headers={"X-Forwarded-For": "10.0.0.2"})
    assert response.status_code == 200


def test_limiter_window_resets():
    clock = FakeClock()
    limiter = LoginRateLimiter(max_attempts=2, window_seconds=60, clock=clock)

    assert limiter.hit("ip") and limiter.hit("ip")
    assert limiter.hit("ip") is False
    assert limiter.retry_after("ip") == 60

    clock.now = 61
    assert limiter.hit("ip") is True


def test_admin_routes_need_admin_role(client, auth_headers):
    assert client.get("/admin/orders", headers=auth_headers).status_code == 403


def test_admin_lists_orders(client, admin_headers, order):
    listing = client.get("/admin/orders", params={"payment_status": "pending"}, headers=admin_headers).json()

    assert listing["total_items"] == 1
    assert listing["results"][0]["id"] == order.id


def test_fulfilment_moves(client, session, service, admin_headers, order):
    service.reconcile(
        session,
        PaymentCallback(provider="sandbox", correlation_key=order.payment_id, status=CallbackStatus.SUCCESS),
    )

    shipped = client.patch(f"/admin/orders/{order.id}/status", json={"status": "shipped"}, headers=admin_headers)
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"
    assert shipped.json()["timeline"][-1]["created_by"] == "admin"

    backwards = client.patch(f"/admin/orders/{order.id}/status", json={"status": "pending"}, headers=admin_headers)
    assert backwards.status_code == 400


def test_admin_cannot_confirm_unpaid_order(client, admin_headers, order):
    response = client.patch(f"/admin/orders/{order.id}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 400


def test_cancelling_unpaid_order_closes_payment(client, session, admin_headers, order):
    response = client.patch(f"/admin/orders/{order.id}/status", json={"status": "cancelled"}, headers=admin_headers)

    assert response.status_code == 200
    session.refresh(order)
    assert order.status == OrderStatus.cancelled.value
    assert order.payment_status == PaymentStatus.cancelled.value


def test_transition_table():
    assert can_transition("confirmed", "shipped")
    assert can_transition("shipped", "delivered")
    assert not can_transition("delivered", "cancelled")
    assert not can_transition("pending", "confirmed")


# -------------------------
# SHIPMENTS
# -------------------------

class DownCourier(MockRateProvider):
    def create_shipment(self, order, courier_id, weight):
        raise ShipmentError("Unable to create shipment", order_id=order.id)


@pytest.fixture
def paid_order(session, service, order):
    service.reconcile(
        session,
        PaymentCallback(provider="sandbox", correlation_key=order.payment_id, status=CallbackStatus.SUCCESS),
    )
    session.refresh(order)
    return order


def test_shipment_for_paid_order(client, session, admin_headers, paid_order):
    response = client.post(f"/admin/orders/{paid_order.id}/shipment", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["shipment_id"].startswith("test_ship_")
    assert body["awb_code"].startswith("TEST")
    assert body["shipment_status"] == "created"
    assert body["timeline"][-1]["event_type"] == "shipment_created"

    session.refresh(paid_order)
    assert paid_order.shipment_id == body["shipment_id"]


def test_shipment_is_booked_once(client, admin_headers, paid_order):
    client.post(f"/admin/orders/{paid_order.id}/shipment", headers=admin_headers)

    assert client.post(f"/admin/orders/{paid_order.id}/shipment", headers=admin_headers).status_code == 409


def test_unpaid_order_cannot_ship(client, admin_headers, order):
    assert client.post(f"/admin/orders/{order.id}/shipment", headers=admin_headers).status_code == 400


def test_shipment_needs_admin(client, auth_headers, paid_order):
    assert client.post(f"/admin/orders/{paid_order.id}/shipment", headers=auth_headers).status_code == 403


def test_courier_failure_leaves_order_unbooked(client, session, admin_headers, paid_order):
    app.dependency_overrides[get_rate_provider] = lambda: DownCourier()

    response = client.post(f"/admin/orders/{paid_order.id}/shipment", headers=admin_headers)

    assert response.status_code == 502
    session.refresh(paid_order)
    assert paid_order.shipment_id is None
    events = [e.event_type for e in list_order_events(session, paid_order.id)]
    assert "shipment_created" not in events
