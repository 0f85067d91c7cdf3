"""Integration tests for order endpoints via TestClient."""

import pytest
from commerce.api.errors import register_error_handlers
from commerce.api.routes import order_router
from commerce.catalogue.product import Product
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    register_error_handlers(app)
    return TestClient(app)


def _checkout(client, product, quantity=2, **overrides):
    body = {
        "user_id": "user-001",
        "items": [{"product_id": str(product.id), "quantity": quantity, "size": "38", "color_code": "#FF0000"}],
    }
    body.update(overrides)
    return client.post("/orders/checkout", json=body)


@pytest.fixture()
def order_id(client, red_sneaker, gateway):
    response = _checkout(client, red_sneaker)
    assert response.status_code == 201
    return response.json()["order_id"]


class TestCheckoutEndpoint:
    def test_checkout_returns_201(self, client, red_sneaker, gateway):
        response = _checkout(client, red_sneaker)

        assert response.status_code == 201
        data = response.json()
        assert data["order_number"].startswith("PAP-")
        assert data["total"] == 50000
        assert data["checkout_url"]

    def test_insufficient_stock_returns_409_with_items(self, client, red_sneaker, gateway):
        response = _checkout(client, red_sneaker, quantity=9)

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "insufficient_stock"
        assert data["insufficient_items"][0]["available"] == 5
        assert data["insufficient_items"][0]["requested"] == 9

    def test_gateway_failure_returns_502(self, client, red_sneaker, gateway):
        gateway.configure(should_succeed=False)
        response = _checkout(client, red_sneaker)
        assert response.status_code == 502
        assert response.json()["error"] == "gateway_error"

    def test_empty_items_is_422(self, client, gateway):
        response = client.post("/orders/checkout", json={"user_id": "user-001", "items": []})
        assert response.status_code == 422


class TestStatusEndpoint:
    def test_invalid_transition_returns_400(self, client, order_id):
        response = client.patch(f"/orders/{order_id}/status", json={"status": "DELIVERED", "changed_by": "admin"})
        assert response.status_code == 400

    def test_cancel_with_reason(self, client, order_id):
        response = client.patch(
            f"/orders/{order_id}/status",
            json={"status": "CANCELLED", "changed_by": "admin", "cancellation_reason": "Pedido duplicado"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["version"] == 2

    def test_cancel_without_reason_returns_400(self, client, order_id):
        response = client.patch(f"/orders/{order_id}/status", json={"status": "CANCELLED", "changed_by": "admin"})
        assert response.status_code == 400

    def test_stale_version_returns_409(self, client, order_id):
        response = client.patch(
            f"/orders/{order_id}/status",
            json={
                "status": "CANCELLED",
                "changed_by": "admin",
                "cancellation_reason": "x",
                "expected_version": 7,
            },
        )
        assert response.status_code == 409
        assert response.json()["error"] == "concurrency_conflict"

    def test_unknown_order_returns_404(self, client):
        response = client.patch("/orders/nope/status", json={"status": "PREPARING", "changed_by": "admin"})
        assert response.status_code == 404


class TestRejectEndpoint:
    def test_reject_pending_order(self, client, order_id):
        response = client.post(f"/orders/{order_id}/reject", json={"reason": "Fraude", "changed_by": "admin"})
        assert response.status_code == 200
        assert response.json()["status"] == "PAYMENT_REJECTED"


class TestQueryEndpoints:
    def test_transitions(self, client, order_id):
        response = client.get(f"/orders/{order_id}/transitions")
        assert response.status_code == 200
        assert response.json() == {
            "current_status": "PENDING",
            "available_transitions": ["PAYMENT_APPROVED", "PAYMENT_REJECTED", "CANCELLED"],
            "is_final": False,
        }

    def test_audit(self, client, order_id):
        client.patch(
            f"/orders/{order_id}/status",
            json={"status": "CANCELLED", "changed_by": "admin", "cancellation_reason": "Duplicado"},
        )
        response = client.get(f"/orders/{order_id}/audit")
        assert response.status_code == 200
        [entry] = response.json()
        assert entry["new_status"] == "CANCELLED"
        assert entry["metadata"]["cancellation_reason"] == "Duplicado"

    def test_audit_of_unknown_order_is_404(self, client):
        assert client.get("/orders/nope/audit").status_code == 404

    def test_tracking(self, client, order_id):
        response = client.get(f"/orders/{order_id}/tracking", params={"user_id": "user-001"})
        assert response.status_code == 200
        data = response.json()
        assert data["progress"] == 0
        assert data["payment"]["status"] == "PENDING"

    def test_tracking_for_another_user_is_404(self, client, order_id):
        response = client.get(f"/orders/{order_id}/tracking", params={"user_id": "user-999"})
        assert response.status_code == 404


class TestConfirmReceiptEndpoint:
    def test_confirm_receipt_after_shipping(self, client, order_id, approve_payment, red_sneaker):
        approve_payment(order_id)
        for status in ("PREPARING", "READY_FOR_SHIPPING", "IN_TRANSIT"):
            client.patch(f"/orders/{order_id}/status", json={"status": status, "changed_by": "admin"})

        response = client.post(f"/orders/{order_id}/confirm-receipt", json={"user_id": "user-001"})

        assert response.status_code == 200
        assert response.json()["status"] == "DELIVERED"
        product = current_domain.repository_for(Product).get(red_sneaker.id)
        assert product.find_variant(color_code="#FF0000", size="38").stock == 3
