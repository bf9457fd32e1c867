import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from database import collection, create_document, now
from handlers.common import find_by_id, require_document, serialize, update_fields
from schemas import CreateCustomerAddressInput, CustomerAddress, UpdateCustomerAddressInput

logger = logging.getLogger(__name__)


def _clear_defaults(user_id: str) -> None:
    collection("customer_address").update_many(
        {"user_id": user_id},
        {"$set": {"is_default": False, "updated_at": now()}},
    )


def create_address(payload: CreateCustomerAddressInput) -> Dict[str, Any]:
    if not find_by_id("user", payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if payload.is_default:
        _clear_defaults(payload.user_id)
    address_id = create_document("customer_address", CustomerAddress(**payload.model_dump()))
    return serialize(find_by_id("customer_address", address_id))


def get_addresses_by_user_id(user_id: str) -> List[Dict[str, Any]]:
    return [serialize(a) for a in collection("customer_address").find({"user_id": user_id}).sort("_id", 1)]


def get_address_by_id(address_id: str) -> Optional[Dict[str, Any]]:
    return serialize(find_by_id("customer_address", address_id))


def update_address(payload: UpdateCustomerAddressInput) -> Dict[str, Any]:
    address = require_document("customer_address", payload.id, "Address not found")
    update = update_fields(payload, nullable=("address_line2",))
    if update.get("is_default") is True:
        _clear_defaults(address["user_id"])
    update["updated_at"] = now()
    collection("customer_address").update_one({"_id": address["_id"]}, {"$set": update})
    return serialize(collection("customer_address").find_one({"_id": address["_id"]}))


def delete_address(address_id: str) -> Dict[str, bool]:
    address = require_document("customer_address", address_id, "Address not found")
    user_id = address["user_id"]
    if collection("customer_address").count_documents({"user_id": user_id}) == 1:
        raise HTTPException(status_code=400, detail="Cannot delete the only address for this user")

    in_use = collection("order").count_documents({
        "user_id": user_id,
        "status": "pending",
        "shipping_address.id": str(address["_id"]),
    })
    if in_use:
        logger.warning("Refusing to delete address %s: used by pending orders", address_id)
        raise HTTPException(status_code=400, detail="Cannot delete address that is used in pending orders")

    collection("customer_address").delete_one({"_id": address["_id"]})
    return {"success": True}


def set_default_address(address_id: str, user_id: str) -> Dict[str, Any]:
    address = require_document("customer_address", address_id, "Address not found")
    if address["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Address does not belong to this user")
    _clear_defaults(user_id)
    collection("customer_address").update_one(
        {"_id": address["_id"]},
        {"$set": {"is_default": True, "updated_at": now()}},
    )
    return serialize(collection("customer_address").find_one({"_id": address["_id"]}))
