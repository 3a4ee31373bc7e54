from sqlmodel import select

from storefront.constants.order_status import PaymentStatus
from storefront.main import app
from storefront.models.order import Order
from storefront.schemas.checkout_schemas import DeliveryInfo
from storefront.services import cart_service
from storefront.services.checkout_service import get_checkout_service
from storefront.utils.token import create_access_token

from tests.conftest import DELIVERY, RAZORPAY_KEY_SECRET, sign_hex


def test_cart_requires_login(client):
    assert client.get("/cart/").status_code == 401


def test_cart_add_and_view(client, auth_headers, product):
    response = client.post("/cart/add", json={"product_id": product.id, "quantity": 2}, headers=auth_headers)
    assert response.status_code == 200

    client.post("/cart/add", json={"product_id": product.id, "quantity": 1}, headers=auth_headers)

    cart = client.get("/cart/", headers=auth_headers).json()
    assert cart["items"][0]["quantity"] == 3
    assert cart["summary"] == {"subtotal": 300.0, "tax": 15.0, "shipping": 0.0, "total": 315.0}


def test_cart_add_unknown_product(client, auth_headers):
    response = client.post("/cart/add", json={"product_id": 999, "quantity": 1}, headers=auth_headers)
    assert response.status_code == 404


def test_cart_update_and_remove(client, auth_headers, filled_cart, product):
    response = client.put(f"/cart/update/{product.id}", json={"quantity": 5}, headers=auth_headers)
    assert response.json()["item"]["quantity"] == 5

    assert client.delete(f"/cart/remove/{product.id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/cart/remove/{product.id}", headers=auth_headers).status_code == 404


def test_cart_clear_twice(client, auth_headers, filled_cart):
    assert client.delete("/cart/clear", headers=auth_headers).json()["removed"] == 1
    assert client.delete("/cart/clear", headers=auth_headers).json()["removed"] == 0


def test_summary(client, auth_headers, filled_cart):
    response = client.post("/checkout/summary", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["items"][0]["line_total"] == 200.0
    assert (body["subtotal"], body["tax"], body["total"]) == (200.0, 10.0, 210.0)


def test_summary_empty_cart(client, auth_headers):
    assert client.post("/checkout/summary", headers=auth_headers).status_code == 400


def test_serviceability(client, auth_headers, filled_cart):
    response = client.post(
        "/checkout/serviceability",
        json={"delivery_pincode": "560001"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["serviceable"] is True
    assert body["couriers"][0]["courier_id"] == "mock_standard"


def test_serviceability_validates_pincode(client, auth_headers, filled_cart):
    response = client.post(
        "/checkout/serviceability",
        json={"delivery_pincode": "ABC"},
        headers=auth_headers,
    )
    assert response.status_code == 422


def test_begin_checkout(client, session, auth_headers, filled_cart):
    response = client.post("/checkout/begin", json={"delivery": DELIVERY}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["provider"] == "sandbox"
    assert body["payment_status"] == "pending"
    assert body["total_amount"] == 210.0
    assert body["session_ref"].startswith("sandbox_")

    order = session.get(Order, body["order_id"])
    assert order.payment_id == body["session_ref"]


def test_begin_checkout_rejects_bad_delivery(client, auth_headers, filled_cart):
    delivery = dict(DELIVERY, pincode="5600")
    response = client.post("/checkout/begin", json={"delivery": delivery}, headers=auth_headers)
    assert response.status_code == 422


def test_begin_checkout_unknown_courier(client, session, auth_headers, filled_cart):
    response = client.post(
        "/checkout/begin",
        json={"delivery": DELIVERY, "shipping": {"courier_id": "nope"}},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert session.exec(select(Order)).all() == []


def test_begin_checkout_empty_cart(client, auth_headers):
    response = client.post("/checkout/begin", json={"delivery": DELIVERY}, headers=auth_headers)
    assert response.status_code == 400


def test_razorpay_client_verification(client, session, auth_headers, filled_cart, make_service, razorpay_gateway):
    service = make_service(razorpay_gateway)
    app.dependency_overrides[get_checkout_service] = lambda: service

    begin = client.post("/checkout/begin", json={"delivery": DELIVERY}, headers=auth_headers).json()
    rzp_order_id = begin["client_options"]["order_id"]
    payload = {
        "razorpay_order_id": rzp_order_id,
        "razorpay_payment_id": "pay_001",
        "razorpay_signature": sign_hex(RAZORPAY_KEY_SECRET, f"{rzp_order_id}|pay_001".encode()),
    }

    first = client.post("/checkout/razorpay/verify", json=payload, headers=auth_headers)
    second = client.post("/checkout/razorpay/verify", json=payload, headers=auth_headers)

    assert first.status_code == 200
    assert first.json()["payment_status"] == PaymentStatus.paid.value
    assert first.json()["txn_id"] == "pay_001"
    assert second.json()["message"] == "Payment already processed"
    assert cart_service.cart_snapshot(session, filled_cart.id) == []


def test_razorpay_client_verification_bad_signature(client, session, auth_headers, filled_cart, make_service, razorpay_gateway):
    service = make_service(razorpay_gateway)
    app.dependency_overrides[get_checkout_service] = lambda: service

    begin = client.post("/checkout/begin", json={"delivery": DELIVERY}, headers=auth_headers).json()
    payload = {
        "razorpay_order_id": begin["client_options"]["order_id"],
        "razorpay_payment_id": "pay_001",
        "razorpay_signature": "0" * 64,
    }

    assert client.post("/checkout/razorpay/verify", json=payload, headers=auth_headers).status_code == 400
    assert session.get(Order, begin["order_id"]).payment_status == PaymentStatus.pending.value


def test_razorpay_verification_of_someone_elses_order(client, auth_headers, filled_cart, other_user, make_service, razorpay_gateway):
    service = make_service(razorpay_gateway)
    app.dependency_overrides[get_checkout_service] = lambda: service

    begin = client.post("/checkout/begin", json={"delivery": DELIVERY}, headers=auth_headers).json()
    rzp_order_id = begin["client_options"]["order_id"]
    payload = {
        "razorpay_order_id": rzp_order_id,
        "razorpay_payment_id": "pay_001",
        "razorpay_signature": sign_hex(RAZORPAY_KEY_SECRET, f"{rzp_order_id}|pay_001".encode()),
    }
    other_headers = {"Authorization": f"Bearer {create_access_token({'sub': str(other_user.id)})}"}

    assert client.post("/checkout/razorpay/verify", json=payload, headers=other_headers).status_code == 404


def test_order_history(client, session, auth_headers, filled_cart, service, user):
    order = service.begin_checkout(session, user, DeliveryInfo(**DELIVERY)).order

    listing = client.get("/orders", headers=auth_headers).json()
    assert listing["total_items"] == 1
    assert listing["results"][0]["id"] == order.id

    detail = client.get(f"/orders/{order.id}", headers=auth_headers).json()
    assert detail["items"][0]["product_name"] == "Product A"
    assert [e["event_type"] for e in detail["timeline"]] == ["order_placed", "payment_session_created"]


def test_order_detail_hidden_from_other_users(client, session, filled_cart, service, user, other_user):
    order = service.begin_checkout(session, user, DeliveryInfo(**DELIVERY)).order
    other_headers = {"Authorization": f"Bearer {create_access_token({'sub': str(other_user.id)})}"}

    assert client.get(f"/orders/{order.id}", headers=other_headers).status_code == 404


def test_health(client):
    body = client.get("/health/check").json()
    assert body["status"] == "ok"
    assert body["payment_provider"] == "sandbox"
