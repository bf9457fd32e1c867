import logging
import re
from typing import Any, Dict, Optional

from fastapi import HTTPException

from database import collection, create_document, now
from handlers.common import find_by_id, money_str, page_params, require_document, serialize, update_fields
from schemas import CreateProductInput, GetProductsInput, Product, UpdateProductInput

logger = logging.getLogger(__name__)


def _require_category(category_id: str) -> None:
    if not find_by_id("category", category_id):
        raise HTTPException(status_code=400, detail=f"Category with id {category_id} does not exist")


def create_product(payload: CreateProductInput) -> Dict[str, Any]:
    _require_category(payload.category_id)
    doc = payload.model_dump()
    doc["price"] = money_str(payload.price)
    doc["weight"] = money_str(payload.weight)
    product_id = create_document("product", Product(**doc))
    return serialize(find_by_id("product", product_id))


def get_products(payload: Optional[GetProductsInput] = None) -> Dict[str, Any]:
    payload = payload or GetProductsInput()
    filt: Dict[str, Any] = {}
    if payload.category_id is not None:
        filt["category_id"] = payload.category_id
    if payload.is_active is not None:
        filt["is_active"] = payload.is_active
    if payload.search:
        pattern = {"$regex": re.escape(payload.search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}]

    page, limit = page_params(payload.page, payload.limit)
    total = collection("product").count_documents(filt)
    cursor = collection("product").find(filt).sort("_id", 1).skip((page - 1) * limit).limit(limit)
    return {"items": [serialize(p) for p in cursor], "total": total, "page": page, "limit": limit}


def get_product_by_id(product_id: str) -> Optional[Dict[str, Any]]:
    return serialize(find_by_id("product", product_id))


def update_product(payload: UpdateProductInput) -> Dict[str, Any]:
    product = require_document("product", payload.id, f"Product with id {payload.id} not found")
    update = update_fields(payload, nullable=("description", "image_url"))
    if "category_id" in update and update["category_id"] != product["category_id"]:
        _require_category(update["category_id"])
    for field in ("price", "weight"):
        if update.get(field) is not None:
            update[field] = money_str(update[field])
    update["updated_at"] = now()
    collection("product").update_one({"_id": product["_id"]}, {"$set": update})
    return serialize(collection("product").find_one({"_id": product["_id"]}))


def delete_product(product_id: str) -> Dict[str, bool]:
    product = require_document("product", product_id, f"Product with id {product_id} not found")
    pid = str(product["_id"])
    if collection("order_item").count_documents({"product_id": pid}) > 0:
        logger.warning("Refusing to delete product %s: referenced by orders", pid)
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete product {product_id} because it is referenced in existing orders",
        )
    collection("cart_item").delete_many({"product_id": pid})
    collection("product").delete_one({"_id": product["_id"]})
    return {"success": True}


def update_product_stock(product_id: str, quantity: int) -> Dict[str, Any]:
    if quantity < 0:
        raise HTTPException(status_code=400, detail="Stock quantity cannot be negative")
    product = require_document("product", product_id, f"Product with id {product_id} not found")
    collection("product").update_one(
        {"_id": product["_id"]},
        {"$set": {"stock_quantity": quantity, "updated_at": now()}},
    )
    logger.info("Stock for product %s set to %d", product_id, quantity)
    return serialize(collection("product").find_one({"_id": product["_id"]}))
