import mongomock
import pytest

import database
from handlers import addresses, categories, products
from handlers.common import find_by_id
from schemas import CreateCategoryInput, CreateCustomerAddressInput, CreateProductInput


@pytest.fixture(autouse=True)
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def make_user(db):
    """Insert a user row directly; bcrypt hashing is only exercised by the auth tests."""
    counter = {"n": 0}

    def _make(role="customer", email=None):
        counter["n"] += 1
        user_id = database.create_document("user", {
            "email": email or f"user{counter['n']}@example.com",
            "password_hash": "not-a-real-hash",
            "full_name": f"User {counter['n']}",
            "phone": None,
            "role": role,
        })
        return find_by_id("user", user_id)

    return _make


@pytest.fixture
def make_category(db):
    def _make(name="Electronics", description=None):
        return categories.create_category(CreateCategoryInput(name=name, description=description))

    return _make


@pytest.fixture
def make_product(make_category):
    def _make(category_id=None, **overrides):
        if category_id is None:
            category_id = make_category()["id"]
        fields = {
            "name": "Test Product",
            "description": "A product for testing",
            "price": 19.99,
            "stock_quantity": 100,
            "category_id": category_id,
            "image_url": None,
            "weight": 500,
            "is_active": True,
        }
        fields.update(overrides)
        return products.create_product(CreateProductInput(**fields))

    return _make


@pytest.fixture
def make_address(db):
    def _make(user_id, is_default=False, city="Jakarta Pusat"):
        return addresses.create_address(CreateCustomerAddressInput(
            user_id=user_id,
            name="Home",
            phone="081234567890",
            address_line1="Jl. Sudirman No. 1",
            address_line2=None,
            city=city,
            province="DKI Jakarta",
            postal_code="10110",
            is_default=is_default,
        ))

    return _make
