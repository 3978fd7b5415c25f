import uuid

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import create_access_token
from database import create_document
from main import app
from schemas import User


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["beverage_store_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


def make_user(role="customer", name="Lan"):
    email = f"{uuid.uuid4().hex[:8]}@example.com"
    user_id = create_document("user", User(name=name, email=email, role=role))
    token = create_access_token({"sub": user_id})
    return {"id": user_id, "email": email, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
def customer(db):
    return make_user()


@pytest.fixture
def other_customer(db):
    return make_user(name="Minh")


@pytest.fixture
def admin(db):
    return make_user(role="admin", name="Admin")


@pytest.fixture
def store(db):
    """A milk tea (35000, size L +5000) with a 5000 topping, plus a coffee."""
    category_id = create_document("category", {"name": "Trà Sữa", "slug": "tra-sua", "is_active": True})
    coffee_category_id = create_document("category", {"name": "Cà Phê", "slug": "ca-phe", "is_active": True})
    milk_tea_id = create_document("product", {
        "name": "Trà Sữa Truyền Thống",
        "slug": "tra-sua-truyen-thong",
        "category_id": category_id,
        "base_price": 35000,
        "is_available": True,
    })
    coffee_id = create_document("product", {
        "name": "Cà Phê Đen",
        "slug": "ca-phe-den",
        "category_id": coffee_category_id,
        "base_price": 20000,
        "is_available": True,
    })
    for value, adjustment, is_default in [("M", 0, True), ("L", 5000, False)]:
        create_document("productoption", {
            "product_id": milk_tea_id,
            "option_group": "size",
            "option_value": value,
            "price_adjustment": adjustment,
            "is_default": is_default,
        })
    pearl_id = create_document("topping", {"name": "Trân châu đen", "price": 5000, "is_available": True})
    create_document("producttopping", {"product_id": milk_tea_id, "topping_id": pearl_id})
    return {
        "category_id": category_id,
        "coffee_category_id": coffee_category_id,
        "milk_tea_id": milk_tea_id,
        "coffee_id": coffee_id,
        "pearl_id": pearl_id,
    }
