from decimal import Decimal

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from shopcore.api import create_app
from shopcore.api.deps import get_order_service, get_product_client
from shopcore.data.database import get_db
from shopcore.services.order_service import OrderService

from conftest import TOKYO_ADDRESS

CUSTOMER = {"X-User-Id": "1"}
OTHER = {"X-User-Id": "2"}
ADMIN = {"X-User-Id": "99", "X-User-Role": "admin"}


@pytest.fixture
def client(session_factory, catalog, notifier):
    app = create_app()

    def _db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _orders(db=Depends(get_db)):
        return OrderService(db, catalog, notification_service=notifier)

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_product_client] = lambda: catalog
    app.dependency_overrides[get_order_service] = _orders

    with TestClient(app) as c:
        yield c


def place_order(client, headers=CUSTOMER, quantity=3):
    client.post("/cart/items", json={"product_id": 1, "quantity": quantity}, headers=headers)
    resp = client.post("/orders", json={"shipping_address": TOKYO_ADDRESS}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestCartApi:
    def test_identity_header_is_required(self, client):
        assert client.get("/cart").status_code == 422

    def test_get_cart(self, client):
        resp = client.get("/cart", headers=CUSTOMER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "active"
        assert resp.json()["items"] == []

    def test_add_item(self, client):
        resp = client.post("/cart/items", json={"product_id": 1, "quantity": 2}, headers=CUSTOMER)
        assert resp.status_code == 201
        body = resp.json()
        assert Decimal(body["total_amount"]) == Decimal("2000.00")
        assert body["items"][0]["quantity"] == 2

    def test_add_item_validation(self, client):
        resp = client.post("/cart/items", json={"product_id": 1, "quantity": 0}, headers=CUSTOMER)
        assert resp.status_code == 422

    def test_add_unavailable_product(self, client):
        resp = client.post("/cart/items", json={"product_id": 4, "quantity": 1}, headers=CUSTOMER)
        assert resp.status_code == 400

    def test_update_item(self, client):
        item_id = client.post("/cart/items", json={"product_id": 2, "quantity": 1}, headers=CUSTOMER).json()["items"][0]["id"]
        resp = client.put(f"/cart/items/{item_id}", json={"quantity": 4}, headers=CUSTOMER)
        assert resp.status_code == 200
        assert Decimal(resp.json()["total_amount"]) == Decimal("79.96")

    def test_update_other_users_item(self, client):
        item_id = client.post("/cart/items", json={"product_id": 2, "quantity": 1}, headers=CUSTOMER).json()["items"][0]["id"]
        resp = client.put(f"/cart/items/{item_id}", json={"quantity": 4}, headers=OTHER)
        assert resp.status_code == 403

    def test_remove_missing_item(self, client):
        assert client.delete("/cart/items/999", headers=CUSTOMER).status_code == 404

    def test_clear_cart(self, client):
        client.post("/cart/items", json={"product_id": 1, "quantity": 1}, headers=CUSTOMER)
        resp = client.delete("/cart", headers=CUSTOMER)
        assert resp.status_code == 200
        assert resp.json()["total_items"] == 0


class TestOrderApi:
    def test_create_order(self, client, notifier):
        order = place_order(client)
        assert Decimal(order["total_amount"]) == Decimal("3800.00")
        assert order["status"] == "pending"
        assert notifier.sent == [(1, order["id"])]

    def test_create_from_empty_cart(self, client):
        resp = client.post("/orders", json={"shipping_address": TOKYO_ADDRESS}, headers=CUSTOMER)
        assert resp.status_code == 400

    def test_invalid_address_lists_fields(self, client):
        client.post("/cart/items", json={"product_id": 1, "quantity": 1}, headers=CUSTOMER)
        resp = client.post(
            "/orders",
            json={"shipping_address": {**TOKYO_ADDRESS, "postal_code": "", "country": ""}},
            headers=CUSTOMER,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["fields"] == ["postal_code", "country"]

    def test_get_order(self, client):
        order = place_order(client)
        assert client.get(f"/orders/{order['id']}", headers=CUSTOMER).json()["id"] == order["id"]
        assert client.get(f"/orders/{order['id']}", headers=OTHER).status_code == 403
        assert client.get("/orders/12345", headers=CUSTOMER).status_code == 404

    def test_get_order_by_number(self, client):
        order = place_order(client)
        resp = client.get(f"/orders/number/{order['order_number']}", headers=CUSTOMER)
        assert resp.status_code == 200
        assert resp.json()["id"] == order["id"]

    def test_list_orders(self, client):
        place_order(client)
        place_order(client, quantity=1)
        place_order(client, headers=OTHER)

        body = client.get("/orders", params={"limit": 1}, headers=CUSTOMER).json()
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["has_next"] is True
        assert len(body["data"]) == 1

        assert client.get("/orders", headers=ADMIN).json()["pagination"]["total"] == 3

    def test_list_limit_is_bounded(self, client):
        assert client.get("/orders", params={"limit": 1000}, headers=CUSTOMER).status_code == 422

    def test_update_requires_admin(self, client):
        order = place_order(client)
        resp = client.put(f"/orders/{order['id']}", json={"status": "confirmed"}, headers=CUSTOMER)
        assert resp.status_code == 403

    def test_admin_update(self, client):
        order = place_order(client)
        resp = client.put(f"/orders/{order['id']}", json={"status": "confirmed"}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"

    def test_invalid_transition_is_conflict(self, client):
        order = place_order(client)
        resp = client.put(f"/orders/{order['id']}", json={"status": "delivered"}, headers=ADMIN)
        assert resp.status_code == 409

    def test_cancel(self, client):
        order = place_order(client)
        resp = client.patch(f"/orders/{order['id']}/cancel", headers=CUSTOMER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert client.patch(f"/orders/{order['id']}/cancel", headers=CUSTOMER).status_code == 409
