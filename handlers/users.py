import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from database import collection, now
from handlers.auth import public_user
from handlers.common import find_by_id, update_fields
from schemas import UpdateUserInput

logger = logging.getLogger(__name__)


def get_users() -> List[Dict[str, Any]]:
    return [public_user(u) for u in collection("user").find().sort("_id", 1)]


def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    user = find_by_id("user", user_id)
    return public_user(user) if user else None


def update_user(payload: UpdateUserInput) -> Dict[str, Any]:
    user = find_by_id("user", payload.id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {payload.id} not found")
    update = update_fields(payload, nullable=("phone",))
    if update.get("email") and update["email"] != user["email"]:
        if collection("user").find_one({"email": update["email"], "_id": {"$ne": user["_id"]}}):
            raise HTTPException(status_code=409, detail="User with this email already exists")
    update["updated_at"] = now()
    try:
        collection("user").update_one({"_id": user["_id"]}, {"$set": update})
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User with this email already exists")
    return public_user(collection("user").find_one({"_id": user["_id"]}))


def delete_user(user_id: str) -> Dict[str, bool]:
    user = find_by_id("user", user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    uid = str(user["_id"])
    if collection("order").count_documents({"user_id": uid}) > 0:
        logger.warning("Refusing to delete user %s: orders exist", uid)
        raise HTTPException(status_code=400, detail="Cannot delete user with existing orders")
    collection("customer_address").delete_many({"user_id": uid})
    collection("cart_item").delete_many({"user_id": uid})
    collection("user").delete_one({"_id": user["_id"]})
    logger.info("Deleted user %s", uid)
    return {"success": True}
