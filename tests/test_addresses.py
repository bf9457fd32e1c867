import pytest
from fastapi import HTTPException

from handlers import addresses
from schemas import UpdateCustomerAddressInput


@pytest.fixture
def user_id(make_user):
    return str(make_user()["_id"])


def defaults(user_id):
    return [a["id"] for a in addresses.get_addresses_by_user_id(user_id) if a["is_default"]]


def test_create_address(user_id, make_address):
    address = make_address(user_id)
    assert address["user_id"] == user_id
    assert address["city"] == "Jakarta Pusat"
    assert address["is_default"] is False


def test_create_default_unsets_previous_default(user_id, make_address):
    first = make_address(user_id, is_default=True)
    assert defaults(user_id) == [first["id"]]
    second = make_address(user_id, is_default=True)
    assert defaults(user_id) == [second["id"]]


def test_create_address_for_unknown_user(make_address):
    with pytest.raises(HTTPException) as exc:
        make_address("999")
    assert exc.value.detail == "User not found"


def test_get_addresses(user_id, make_address, make_user):
    assert addresses.get_addresses_by_user_id(user_id) == []
    make_address(user_id)
    make_address(str(make_user()["_id"]))
    assert len(addresses.get_addresses_by_user_id(user_id)) == 1


def test_get_address_by_id(user_id, make_address):
    address = make_address(user_id)
    assert addresses.get_address_by_id(address["id"])["name"] == "Home"
    assert addresses.get_address_by_id("999") is None


def test_update_address(user_id, make_address):
    first = make_address(user_id, is_default=True)
    second = make_address(user_id)
    updated = addresses.update_address(UpdateCustomerAddressInput(id=second["id"], city="Bandung", is_default=True))
    assert updated["city"] == "Bandung"
    assert updated["is_default"] is True
    assert addresses.get_address_by_id(first["id"])["is_default"] is False

    with pytest.raises(HTTPException) as exc:
        addresses.update_address(UpdateCustomerAddressInput(id="999", city="x"))
    assert exc.value.detail == "Address not found"


def test_delete_address(user_id, make_address):
    first = make_address(user_id)
    make_address(user_id)
    assert addresses.delete_address(first["id"]) == {"success": True}
    assert addresses.get_address_by_id(first["id"]) is None


def test_cannot_delete_only_address(user_id, make_address):
    only = make_address(user_id)
    with pytest.raises(HTTPException) as exc:
        addresses.delete_address(only["id"])
    assert "Cannot delete the only address" in exc.value.detail

    with pytest.raises(HTTPException) as exc:
        addresses.delete_address("999")
    assert exc.value.detail == "Address not found"


def test_cannot_delete_address_used_by_pending_order(user_id, make_address, db):
    first = make_address(user_id)
    make_address(user_id)
    db["order"].insert_one({"user_id": user_id, "status": "pending", "shipping_address": {"id": first["id"]}})
    with pytest.raises(HTTPException) as exc:
        addresses.delete_address(first["id"])
    assert exc.value.detail == "Cannot delete address that is used in pending orders"

    db["order"].update_many({}, {"$set": {"status": "shipped"}})
    assert addresses.delete_address(first["id"]) == {"success": True}


def test_set_default_address(user_id, make_address, make_user):
    first = make_address(user_id, is_default=True)
    second = make_address(user_id)
    result = addresses.set_default_address(second["id"], user_id)
    assert result["is_default"] is True
    assert defaults(user_id) == [second["id"]]
    assert addresses.get_address_by_id(first["id"])["is_default"] is False

    with pytest.raises(HTTPException) as exc:
        addresses.set_default_address("999", user_id)
    assert exc.value.detail == "Address not found"

    other = str(make_user()["_id"])
    with pytest.raises(HTTPException) as exc:
        addresses.set_default_address(first["id"], other)
    assert exc.value.detail == "Address does not belong to this user"


def test_update_address_ignores_null_required_fields(user_id, make_address):
    address = make_address(user_id)
    addresses.update_address(UpdateCustomerAddressInput(id=address["id"], address_line2="Unit 5"))
    updated = addresses.update_address(UpdateCustomerAddressInput(
        id=address["id"], city=None, postal_code=None, is_default=None, address_line2=None,
    ))
    assert updated["city"] == "Jakarta Pusat"
    assert updated["postal_code"] == "10110"
    assert updated["is_default"] is False
    assert updated["address_line2"] is None
