from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.main import create_app

ADMIN = {"X-User-Id": "99", "X-User-Roles": "ADMIN"}
ANN = {"X-User-Id": "1"}
BOB = {"X-User-Id": "2"}
GUEST = {"X-User-Id": "guest-abc"}
CARD = {"card_number": "4111111111111111", "expiry_date": "12/30", "cvv": "123"}


@pytest.fixture
def client():
    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def product_id(client):
    client.post("/users/", json={"id": 1, "name": "Ann", "email": "ann@example.com"})
    client.post("/users/", json={"id": 2, "name": "Bob"})
    resp = client.post(
        "/products/", json={"name": "Keyboard", "price": "10.00", "stock_quantity": 5}, headers=ADMIN
    )
    assert resp.status_code == 201
    return resp.json()["id"]


def _stock(client, product_id):
    return client.get(f"/products/{product_id}").json()["stock_quantity"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_admin_routes_need_admin_role(client):
    resp = client.post("/products/", json={"name": "Keyboard", "price": "1.00"}, headers=ANN)

    assert resp.status_code == 403
    assert resp.json()["code"] == "access_denied"


def test_payment_methods(client):
    assert client.get("/payments/methods").json() == {"methods": ["creditcard", "paypal"]}


def test_guest_cart_merge_and_checkout(client, product_id):
    resp = client.post("/cart/items", json={"product_id": product_id, "quantity": 2}, headers=GUEST)
    assert resp.status_code == 200
    assert Decimal(resp.json()["total"]) == Decimal("20.00")

    merged = client.post("/cart/merge", json={"guest_id": "guest-abc"}, headers=ANN).json()
    assert [(i["product_id"], i["quantity"]) for i in merged["items"]] == [(product_id, 2)]
    assert client.get("/cart/", headers=GUEST).json()["items"] == []

    resp = client.post(
        "/cart/checkout",
        json={"payment_method": "Credit Card", "payment_details": CARD, "shipping_address": "Main St 1"},
        headers=ANN,
    )
    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "PROCESSING"
    assert order["payment_status"] == "COMPLETED"
    assert Decimal(order["total_amount"]) == Decimal("20.00")
    assert _stock(client, product_id) == 3
    assert client.get("/cart/", headers=ANN).json()["items"] == []


def test_merge_only_takes_guest_carts(client, product_id):
    client.post("/cart/items", json={"product_id": product_id, "quantity": 1}, headers=BOB)

    resp = client.post("/cart/merge", json={"guest_id": "2"}, headers=ANN)
    assert resp.status_code == 403
    assert resp.json()["code"] == "access_denied"
    assert len(client.get("/cart/", headers=BOB).json()["items"]) == 1

    resp = client.post("/cart/merge", json={"guest_id": "guest-unknown"}, headers=ANN)
    assert resp.status_code == 200
    assert resp.json()["items"] == []


def test_cart_cap(client, product_id):
    client.post("/cart/items", json={"product_id": product_id, "quantity": 5}, headers=ANN)
    client.post("/products/%d/restock" % product_id, json={"quantity": 20}, headers=ADMIN)

    resp = client.post("/cart/items", json={"product_id": product_id, "quantity": 6}, headers=ANN)

    assert resp.status_code == 400
    assert resp.json()["code"] == "maximum_quantity_exceeded"


def test_order_lifecycle(client, product_id):
    resp = client.post("/orders/", json={"items": [{"product_id": product_id, "quantity": 2}]}, headers=ANN)
    assert resp.status_code == 201
    order_id = resp.json()["id"]
    assert _stock(client, product_id) == 3

    assert client.get(f"/orders/{order_id}", headers=ANN).status_code == 200
    assert client.get(f"/orders/{order_id}", headers=BOB).status_code == 403
    assert client.get(f"/orders/{order_id}", headers=ADMIN).status_code == 200

    mine = client.get("/orders/mine", headers=ANN).json()
    assert mine["total"] == 1

    assert client.put(f"/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=ANN).status_code == 403

    resp = client.put(f"/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=ADMIN)
    assert resp.json()["status"] == "CANCELLED"
    assert _stock(client, product_id) == 5

    resp = client.put(f"/orders/{order_id}/status", json={"status": "PROCESSING"}, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_status_transition"

    listed = client.get("/orders/", params={"status": "CANCELLED"}, headers=ADMIN).json()
    assert [o["id"] for o in listed] == [order_id]


def test_payment_update_and_refund(client, product_id):
    order_id = client.post(
        "/orders/", json={"items": [{"product_id": product_id, "quantity": 1}]}, headers=ANN
    ).json()["id"]

    resp = client.put(f"/orders/{order_id}/payment", json={"payment_status": "COMPLETED"}, headers=ADMIN)
    assert resp.json()["status"] == "PROCESSING"

    resp = client.post(f"/orders/{order_id}/refund", json={}, headers=ADMIN)
    assert resp.status_code == 400


def test_unsupported_payment_method(client, product_id):
    resp = client.post(
        "/orders/with-payment",
        json={"items": [{"product_id": product_id, "quantity": 1}], "payment_method": "bitcoin"},
        headers=ANN,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "unsupported_payment_method"
    assert _stock(client, product_id) == 5


def test_failed_payment_reports_order(client, product_id):
    resp = client.post(
        "/orders/with-payment",
        json={"items": [{"product_id": product_id, "quantity": 1}], "payment_method": "paypal"},
        headers=ANN,
    )

    assert resp.status_code == 402
    body = resp.json()
    assert body["code"] == "payment_failed"
    assert client.get(f"/orders/{body['order_id']}", headers=ANN).json()["payment_status"] == "FAILED"
    assert _stock(client, product_id) == 5


def test_insufficient_stock(client, product_id):
    resp = client.post("/orders/", json={"items": [{"product_id": product_id, "quantity": 6}]}, headers=ANN)

    assert resp.status_code == 409
    assert resp.json() == {
        "error": "Insufficient stock for product: Keyboard. Required: 6, Available: 5",
        "code": "insufficient_stock",
        "product_id": product_id,
    }


def test_guest_cannot_place_orders(client, product_id):
    resp = client.post("/orders/", json={"items": [{"product_id": product_id, "quantity": 1}]}, headers=GUEST)
    assert resp.status_code == 400


def test_count_orders(client, product_id):
    client.post("/orders/", json={"items": [{"product_id": product_id, "quantity": 1}]}, headers=ANN)

    resp = client.get("/orders/count", params={"since": "2000-01-01T00:00:00+00:00"}, headers=ADMIN)
    assert resp.json() == {"count": 1}
