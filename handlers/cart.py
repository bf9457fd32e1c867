from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import collection, now
from handlers.common import find_by_id, serialize, to_decimal
from schemas import AddToCartInput, CartItem, UpdateCartItemInput


def _require_user(user_id: str) -> None:
    if not find_by_id("user", user_id):
        raise HTTPException(status_code=404, detail="User not found")


def add_to_cart(payload: AddToCartInput) -> Dict[str, Any]:
    _require_user(payload.user_id)
    product = find_by_id("product", payload.product_id)
    if not product or not product.get("is_active"):
        raise HTTPException(status_code=404, detail="Product not found or not active")

    row = CartItem(**payload.model_dump())
    try:
        return serialize(_upsert_cart_row(row))
    except DuplicateKeyError:
        # a concurrent add inserted the row first; merge into it
        return serialize(_upsert_cart_row(row))


def _upsert_cart_row(row: CartItem) -> Dict[str, Any]:
    stamp = now()
    return collection("cart_item").find_one_and_update(
        {"user_id": row.user_id, "product_id": row.product_id},
        {
            "$inc": {"quantity": row.quantity},
            "$set": {"updated_at": stamp},
            "$setOnInsert": {"created_at": stamp},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def get_cart_by_user_id(user_id: str) -> List[Dict[str, Any]]:
    _require_user(user_id)
    items = []
    for it in collection("cart_item").find({"user_id": user_id}).sort("_id", 1):
        item = serialize(it)
        item["product"] = serialize(find_by_id("product", it["product_id"]))
        items.append(item)
    return items


def update_cart_item(payload: UpdateCartItemInput, user_id: Optional[str] = None) -> Dict[str, Any]:
    item = find_by_id("cart_item", payload.id)
    if not item or (user_id is not None and item["user_id"] != user_id):
        raise HTTPException(status_code=404, detail="Cart item not found")
    collection("cart_item").update_one(
        {"_id": item["_id"]},
        {"$set": {"quantity": payload.quantity, "updated_at": now()}},
    )
    return serialize(collection("cart_item").find_one({"_id": item["_id"]}))


def remove_cart_item(cart_item_id: str, user_id: str) -> Dict[str, bool]:
    item = find_by_id("cart_item", cart_item_id)
    if not item or item["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="Cart item not found or does not belong to user")
    collection("cart_item").delete_one({"_id": item["_id"]})
    return {"success": True}


def clear_cart(user_id: str) -> Dict[str, bool]:
    _require_user(user_id)
    collection("cart_item").delete_many({"user_id": user_id})
    return {"success": True}


def get_cart_total(user_id: str) -> Dict[str, Any]:
    _require_user(user_id)
    subtotal = to_decimal(0)
    total_items = 0
    for it in collection("cart_item").find({"user_id": user_id}):
        product = find_by_id("product", it["product_id"])
        if not product:
            continue
        subtotal += to_decimal(product["price"]) * it["quantity"]
        total_items += it["quantity"]
    return {"subtotal": float(subtotal), "total_items": total_items}
