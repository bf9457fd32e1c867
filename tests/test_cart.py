import pytest
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from handlers import cart
from schemas import AddToCartInput, UpdateCartItemInput


@pytest.fixture
def user_id(make_user):
    return str(make_user()["_id"])


@pytest.fixture
def product(make_product):
    return make_product(price=19.99)


def test_add_to_cart(user_id, product):
    item = cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    assert item["user_id"] == user_id
    assert item["product_id"] == product["id"]
    assert item["quantity"] == 2


def test_duplicate_add_merges_quantity(user_id, product, db):
    first = cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    second = cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    assert second["id"] == first["id"]
    assert second["quantity"] == 4
    assert db["cart_item"].count_documents({"user_id": user_id}) == 1


def test_add_to_cart_validation(user_id, product, make_product):
    with pytest.raises(HTTPException) as exc:
        cart.add_to_cart(AddToCartInput(user_id="999", product_id=product["id"], quantity=1))
    assert exc.value.detail == "User not found"

    with pytest.raises(HTTPException) as exc:
        cart.add_to_cart(AddToCartInput(user_id=user_id, product_id="999", quantity=1))
    assert exc.value.detail == "Product not found or not active"

    inactive = make_product(is_active=False)
    with pytest.raises(HTTPException) as exc:
        cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=inactive["id"], quantity=1))
    assert exc.value.detail == "Product not found or not active"


def test_get_cart_includes_product(user_id, product):
    assert cart.get_cart_by_user_id(user_id) == []
    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    items = cart.get_cart_by_user_id(user_id)
    assert len(items) == 1
    assert items[0]["quantity"] == 2
    assert items[0]["product"]["name"] == "Test Product"

    with pytest.raises(HTTPException):
        cart.get_cart_by_user_id("999")


def test_update_cart_item(user_id, product, make_user):
    item = cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    updated = cart.update_cart_item(UpdateCartItemInput(id=item["id"], quantity=5))
    assert updated["id"] == item["id"]
    assert updated["quantity"] == 5

    with pytest.raises(HTTPException) as exc:
        cart.update_cart_item(UpdateCartItemInput(id="999", quantity=1))
    assert exc.value.detail == "Cart item not found"

    other = str(make_user()["_id"])
    with pytest.raises(HTTPException):
        cart.update_cart_item(UpdateCartItemInput(id=item["id"], quantity=1), user_id=other)


def test_remove_cart_item(user_id, product, make_user):
    item = cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=1))
    other = str(make_user()["_id"])
    with pytest.raises(HTTPException) as exc:
        cart.remove_cart_item(item["id"], other)
    assert exc.value.detail == "Cart item not found or does not belong to user"

    assert cart.remove_cart_item(item["id"], user_id) == {"success": True}
    assert cart.get_cart_by_user_id(user_id) == []

    with pytest.raises(HTTPException):
        cart.remove_cart_item(item["id"], user_id)


def test_clear_cart(user_id, product, make_product):
    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=1))
    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=make_product()["id"], quantity=1))
    assert cart.clear_cart(user_id) == {"success": True}
    assert cart.get_cart_by_user_id(user_id) == []

    with pytest.raises(HTTPException) as exc:
        cart.clear_cart("999")
    assert exc.value.detail == "User not found"


def test_cart_total(user_id, product, make_product):
    assert cart.get_cart_total(user_id) == {"subtotal": 0.0, "total_items": 0}

    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=2))
    assert cart.get_cart_total(user_id) == {"subtotal": 39.98, "total_items": 2}

    other = make_product(price=25.50)
    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=other["id"], quantity=1))
    assert cart.get_cart_total(user_id) == {"subtotal": 65.48, "total_items": 3}

    with pytest.raises(HTTPException):
        cart.get_cart_total("999")


def test_cart_index_keeps_one_row_per_product(user_id, product, db):
    cart.add_to_cart(AddToCartInput(user_id=user_id, product_id=product["id"], quantity=1))
    with pytest.raises(DuplicateKeyError):
        db["cart_item"].insert_one({"user_id": user_id, "product_id": product["id"], "quantity": 1})
