import pytest
from fastapi import HTTPException

from handlers import products
from schemas import GetProductsInput, UpdateProductInput


def test_create_product_stores_fixed_point_strings(make_product, db):
    product = make_product(price=19.99, weight=250)
    assert product["price"] == 19.99
    assert product["weight"] == 250.0
    assert product["stock_quantity"] == 100

    stored = db["product"].find_one({"name": "Test Product"})
    assert stored["price"] == "19.99"
    assert stored["weight"] == "250.00"


def test_create_product_with_nulls(make_product):
    product = make_product(description=None, image_url=None)
    assert product["description"] is None
    assert product["image_url"] is None


def test_create_product_requires_existing_category(make_product):
    with pytest.raises(HTTPException) as exc:
        make_product(category_id="9999")
    assert exc.value.detail == "Category with id 9999 does not exist"


@pytest.fixture
def catalogue(make_category, make_product):
    phones = make_category(name="Phones")
    books = make_category(name="Books")
    make_product(category_id=phones["id"], name="Gaming Phone", description="Fast")
    make_product(category_id=phones["id"], name="Budget Phone", description="Cheap and cheerful")
    make_product(category_id=books["id"], name="Cookbook", description="Recipes for gaming nights")
    make_product(category_id=books["id"], name="Old Atlas", description="Maps", is_active=False)
    return {"phones": phones, "books": books}


def test_get_products_default_pagination(catalogue):
    result = products.get_products()
    assert result["total"] == 4
    assert result["page"] == 1
    assert result["limit"] == 10
    assert len(result["items"]) == 4


def test_get_products_filters(catalogue):
    by_category = products.get_products(GetProductsInput(category_id=catalogue["phones"]["id"]))
    assert {p["name"] for p in by_category["items"]} == {"Gaming Phone", "Budget Phone"}

    inactive = products.get_products(GetProductsInput(is_active=False))
    assert [p["name"] for p in inactive["items"]] == ["Old Atlas"]

    by_name = products.get_products(GetProductsInput(search="phone"))
    assert by_name["total"] == 2

    by_description = products.get_products(GetProductsInput(search="recipes"))
    assert [p["name"] for p in by_description["items"]] == ["Cookbook"]

    combined = products.get_products(GetProductsInput(search="gaming", category_id=catalogue["books"]["id"]))
    assert [p["name"] for p in combined["items"]] == ["Cookbook"]


def test_search_is_literal(make_product):
    make_product(name="C++ Primer")
    make_product(name="Cxx Primer")
    result = products.get_products(GetProductsInput(search="C++"))
    assert [p["name"] for p in result["items"]] == ["C++ Primer"]


def test_get_products_pagination(catalogue):
    first = products.get_products(GetProductsInput(page=1, limit=3))
    second = products.get_products(GetProductsInput(page=2, limit=3))
    assert len(first["items"]) == 3
    assert len(second["items"]) == 1
    assert second["total"] == 4
    assert not {p["id"] for p in first["items"]} & {p["id"] for p in second["items"]}


def test_get_product_by_id(make_product):
    product = make_product()
    assert products.get_product_by_id(product["id"])["name"] == "Test Product"
    assert products.get_product_by_id("9999") is None


def test_update_product_only_sent_fields(make_product, db):
    product = make_product()
    updated = products.update_product(UpdateProductInput(id=product["id"], price=25.5, stock_quantity=3))
    assert updated["price"] == 25.5
    assert updated["stock_quantity"] == 3
    assert updated["name"] == "Test Product"
    assert db["product"].find_one({"name": "Test Product"})["price"] == "25.50"


def test_update_product_validates_category(make_product):
    product = make_product()
    with pytest.raises(HTTPException) as exc:
        products.update_product(UpdateProductInput(id=product["id"], category_id="9999"))
    assert exc.value.detail == "Category with id 9999 does not exist"


def test_update_missing_product():
    with pytest.raises(HTTPException) as exc:
        products.update_product(UpdateProductInput(id="9999", name="x"))
    assert exc.value.detail == "Product with id 9999 not found"


def test_delete_product_clears_carts(make_product, db):
    product = make_product()
    db["cart_item"].insert_one({"user_id": "u", "product_id": product["id"], "quantity": 1})
    assert products.delete_product(product["id"]) == {"success": True}
    assert products.get_product_by_id(product["id"]) is None
    assert db["cart_item"].count_documents({}) == 0

    with pytest.raises(HTTPException) as exc:
        products.delete_product("9999")
    assert exc.value.detail == "Product with id 9999 not found"


def test_delete_product_referenced_by_orders(make_product, db):
    product = make_product()
    db["order_item"].insert_one({"order_id": "o", "product_id": product["id"], "quantity": 1})
    with pytest.raises(HTTPException) as exc:
        products.delete_product(product["id"])
    assert "referenced in existing orders" in exc.value.detail


def test_update_product_stock(make_product):
    product = make_product()
    assert products.update_product_stock(product["id"], 42)["stock_quantity"] == 42
    assert products.update_product_stock(product["id"], 0)["stock_quantity"] == 0

    with pytest.raises(HTTPException) as exc:
        products.update_product_stock(product["id"], -5)
    assert exc.value.detail == "Stock quantity cannot be negative"

    with pytest.raises(HTTPException) as exc:
        products.update_product_stock("9999", 10)
    assert exc.value.detail == "Product with id 9999 not found"


def test_update_product_ignores_null_price(make_product):
    product = make_product(price=19.99, image_url="http://img/1.png")
    updated = products.update_product(UpdateProductInput(id=product["id"], price=None, name=None, image_url=None))
    assert updated["price"] == 19.99
    assert updated["name"] == "Test Product"
    assert updated["image_url"] is None
