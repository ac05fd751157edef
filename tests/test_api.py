"""Tests for the FastAPI order endpoints."""

import pytest
from fastapi.testclient import TestClient

from database import get_database


@pytest.fixture
def tomatoes(add_product):
    return add_product("Organic Tomatoes", price=1200, stock=100)


@pytest.fixture
def created(api_client, tomatoes, order_payload):
    response = api_client.post("/api/orders/create", json=order_payload((tomatoes, "Organic Tomatoes", 1200, 2)))
    assert response.status_code == 200
    return response.json()["data"]


class TestCreate:
    def test_envelope_and_camel_case(self, api_client, tomatoes, order_payload, stock_of):
        response = api_client.post(
            "/api/orders/create", json=order_payload((tomatoes, "Organic Tomatoes", 1200, 2), total=2400)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Order created successfully"
        order = body["data"]
        assert order["status"] == "pending"
        assert order["paymentStatus"] == "pending"
        assert order["totalAmount"] == 2400
        assert order["orderNumber"].startswith("FS")
        assert order["timeline"][0]["note"] == "Order placed"
        assert stock_of(tomatoes) == 98

    def test_validation_error(self, api_client, tomatoes, order_payload):
        payload = order_payload((tomatoes, "Organic Tomatoes", 1200, 1))
        del payload["deliveryAddress"]["phone"]

        response = api_client.post("/api/orders/create", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errorType"] == "ValidationError"
        assert body["message"].startswith("deliveryAddress.phone")

    def test_insufficient_stock(self, api_client, add_product, order_payload):
        pid = add_product("Okra", stock=1)

        response = api_client.post("/api/orders/create", json=order_payload((pid, "Okra", 300, 2)))

        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient stock for Okra. Available: 1"
        assert response.json()["errorType"] == "InsufficientStockError"

    def test_product_not_found(self, api_client, order_payload):
        response = api_client.post(
            "/api/orders/create", json=order_payload(("64b0000000000000000000ff", "Ghost", 1, 1))
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Product Ghost not found"


class TestRead:
    def test_get_order(self, api_client, created):
        response = api_client.get(f"/api/orders/{created['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["orderNumber"] == created["orderNumber"]

    def test_get_order_invalid_id(self, api_client):
        response = api_client.get("/api/orders/not-an-id")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_list_by_customer_and_farmer(self, api_client, created):
        by_customer = api_client.get(f"/api/orders/customer/{created['customerId']}").json()
        by_farmer = api_client.get(f"/api/orders/farmer/{created['farmerId']}").json()

        assert [o["id"] for o in by_customer["data"]] == [created["id"]]
        assert [o["id"] for o in by_farmer["data"]] == [created["id"]]

    def test_list_invalid_customer(self, api_client):
        response = api_client.get("/api/orders/customer/abc")
        assert response.status_code == 404
        assert response.json()["message"] == "Invalid Customer ID"

    def test_stats(self, api_client, created):
        api_client.patch(f"/api/orders/{created['id']}/payment", json={"paymentStatus": "paid"})

        response = api_client.get(f"/api/orders/farmer/{created['farmerId']}/stats")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "totalOrders": 1,
            "pendingOrders": 1,
            "confirmedOrders": 0,
            "deliveredOrders": 0,
            "cancelledOrders": 0,
            "totalRevenue": 2400,
        }


class TestMutations:
    def test_update_status(self, api_client, created):
        response = api_client.patch(
            f"/api/orders/{created['id']}/status", json={"status": "confirmed", "note": "Accepted"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["confirmedAt"] is not None
        assert data["timeline"][-1]["status"] == "confirmed"
        assert data["timeline"][-1]["note"] == "Accepted"

    def test_update_status_bogus(self, api_client, created):
        response = api_client.patch(f"/api/orders/{created['id']}/status", json={"status": "bogus"})

        assert response.status_code == 400
        assert response.json()["errorType"] == "InvalidStatusError"

    def test_update_status_wrong_farmer(self, api_client, created):
        response = api_client.patch(
            f"/api/orders/{created['id']}/status",
            json={"status": "confirmed", "farmerId": "64b0000000000000000000aa"},
        )
        assert response.status_code == 403

    def test_update_payment(self, api_client, created):
        response = api_client.patch(
            f"/api/orders/{created['id']}/payment",
            json={"paymentStatus": "paid", "paymentReference": "PSK-9"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paymentStatus"] == "paid"
        assert data["paymentReference"] == "PSK-9"
        assert response.json()["message"] == "Payment status updated"

    def test_cancel(self, api_client, created, tomatoes, stock_of):
        response = api_client.post(f"/api/orders/{created['id']}/cancel", json={"reason": "Too late"})

        assert response.status_code == 200
        assert response.json()["data"]["cancellationReason"] == "Too late"
        assert stock_of(tomatoes) == 100

    def test_cancel_without_body(self, api_client, created):
        response = api_client.post(f"/api/orders/{created['id']}/cancel")

        assert response.status_code == 200
        assert response.json()["data"]["timeline"][-1]["note"] == "Order cancelled"

    def test_cancel_twice(self, api_client, created):
        api_client.post(f"/api/orders/{created['id']}/cancel", json={})
        response = api_client.post(f"/api/orders/{created['id']}/cancel", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot cancel this order"


class TestHealth:
    def test_health_with_database(self, api_client, created):
        body = api_client.get("/api/health").json()
        assert body["connection_status"] == "Connected"
        assert "order" in body["collections"]

    def test_no_database(self):
        from main import app

        app.dependency_overrides[get_database] = lambda: None
        try:
            client = TestClient(app)
            assert client.get("/api/health").json()["connection_status"] == "Not Connected"
            response = client.get("/api/orders/64b0000000000000000000ff")
            assert response.status_code == 500
            assert response.json()["message"] == "Database not available"
        finally:
            app.dependency_overrides.clear()
