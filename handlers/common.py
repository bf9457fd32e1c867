from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from database import collection, to_object_id

CENTS = Decimal("0.01")

MONEY_FIELDS = ("price", "weight", "total_amount", "shipping_cost", "unit_price", "total_price", "amount")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def money_str(value: Any) -> str:
    return str(to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def serialize(doc: Optional[Dict[str, Any]], hidden: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    """Turn a Mongo document into an API shape: `_id` -> `id`, money strings -> numbers."""
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    for field in MONEY_FIELDS:
        if isinstance(out.get(field), str):
            out[field] = float(out[field])
    for field in hidden:
        out.pop(field, None)
    return out


def find_by_id(collection_name: str, id_value: Any) -> Optional[Dict[str, Any]]:
    oid = to_object_id(id_value)
    if oid is None:
        return None
    return collection(collection_name).find_one({"_id": oid})


def require_document(collection_name: str, id_value: Any, detail: str, status_code: int = 404) -> Dict[str, Any]:
    doc = find_by_id(collection_name, id_value)
    if not doc:
        raise HTTPException(status_code=status_code, detail=detail)
    return doc


def update_fields(payload: BaseModel, nullable: Iterable[str] = ()) -> Dict[str, Any]:
    """Fields the caller sent, minus `id`. An explicit null only clears a column listed in `nullable`."""
    sent = payload.model_dump(exclude_unset=True, exclude={"id"})
    return {k: v for k, v in sent.items() if v is not None or k in nullable}


def page_params(page: Optional[int], limit: Optional[int]):
    page = page or DEFAULT_PAGE
    limit = min(limit or DEFAULT_LIMIT, MAX_LIMIT)
    return page, limit
