import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from database import collection, create_document, now
from handlers.common import find_by_id, require_document, serialize, update_fields
from schemas import Category, CreateCategoryInput, UpdateCategoryInput

logger = logging.getLogger(__name__)


def create_category(payload: CreateCategoryInput) -> Dict[str, Any]:
    category_id = create_document("category", Category(**payload.model_dump()))
    return serialize(find_by_id("category", category_id))


def get_categories() -> List[Dict[str, Any]]:
    return [serialize(c) for c in collection("category").find().sort("name", 1)]


def get_category_by_id(category_id: str) -> Optional[Dict[str, Any]]:
    return serialize(find_by_id("category", category_id))


def update_category(payload: UpdateCategoryInput) -> Dict[str, Any]:
    category = require_document("category", payload.id, "Category not found")
    update = update_fields(payload, nullable=("description",))
    update["updated_at"] = now()
    collection("category").update_one({"_id": category["_id"]}, {"$set": update})
    return serialize(collection("category").find_one({"_id": category["_id"]}))


def delete_category(category_id: str) -> Dict[str, bool]:
    category = require_document("category", category_id, "Category not found")
    if collection("product").count_documents({"category_id": str(category["_id"])}) > 0:
        logger.warning("Refusing to delete category %s: products exist", category_id)
        raise HTTPException(status_code=400, detail="Cannot delete category with existing products")
    collection("category").delete_one({"_id": category["_id"]})
    return {"success": True}
