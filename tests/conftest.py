"""Pytest fixtures for the order service tests."""

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from database import get_database
from orders import OrderService

CUSTOMER_ID = "64b000000000000000000001"
FARMER_ID = "64b000000000000000000002"


@pytest.fixture
def mongo_db():
    """In-memory database, fresh per test."""
    client = mongomock.MongoClient()
    yield client["farmspot_test"]
    client.close()


@pytest.fixture
def service(mongo_db):
    return OrderService(mongo_db)


@pytest.fixture
def add_product(mongo_db):
    """Insert a product and return its id as a string."""

    def _add(name="Organic Tomatoes", price=1200, stock=100, listed_by=FARMER_ID):
        doc = {"name": name, "price": price, "stock": stock}
        if listed_by is not None:
            doc["listed_by"] = listed_by
        return str(mongo_db["product"].insert_one(doc).inserted_id)

    return _add


@pytest.fixture
def stock_of(mongo_db):
    def _stock(product_id):
        return mongo_db["product"].find_one({"_id": ObjectId(product_id)})["stock"]

    return _stock


@pytest.fixture
def order_payload():
    """Build a checkout payload in wire (camelCase) form."""

    def _payload(*lines, total=None, **overrides):
        items = [
            {
                "productId": product_id,
                "name": name,
                "price": price,
                "quantity": quantity,
                "subtotal": price * quantity,
            }
            for product_id, name, price, quantity in lines
        ]
        payload = {
            "customerId": CUSTOMER_ID,
            "farmerId": FARMER_ID,
            "items": items,
            "totalAmount": total if total is not None else sum(i["subtotal"] for i in items),
            "paymentMethod": "cod",
            "deliveryAddress": {
                "street": "1 Farm Rd",
                "city": "Lagos",
                "state": "LA",
                "phone": "08000000000",
            },
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def api_client(mongo_db):
    from main import app

    app.dependency_overrides[get_database] = lambda: mongo_db
    yield TestClient(app)
    app.dependency_overrides.clear()
