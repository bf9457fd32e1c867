import logging
import math
import secrets
import string
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import collection, create_document, now, to_object_id
from handlers.common import find_by_id, money_str, page_params, serialize, to_decimal
from schemas import CreateOrderInput, GetOrdersInput, Order, OrderItem, UpdateOrderStatusInput

logger = logging.getLogger(__name__)

MIN_SHIPPING_COST = Decimal("10")
SHIPPING_COST_PER_KG = Decimal("5")
ORDER_NUMBER_ATTEMPTS = 3

ADDRESS_SNAPSHOT_FIELDS = ("name", "phone", "address_line1", "address_line2", "city", "province", "postal_code")


def shipping_cost_for_weight(total_weight_grams: Decimal) -> Decimal:
    kilos = math.ceil(total_weight_grams / 1000)
    return max(MIN_SHIPPING_COST, kilos * SHIPPING_COST_PER_KG)


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(6))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def _release_stock(reserved: List[tuple]) -> None:
    for product_oid, quantity in reserved:
        collection("product").update_one(
            {"_id": product_oid},
            {"$inc": {"stock_quantity": quantity}, "$set": {"updated_at": now()}},
        )


def create_order(payload: CreateOrderInput) -> Dict[str, Any]:
    address_oid = to_object_id(payload.shipping_address_id)
    address = collection("customer_address").find_one({"_id": address_oid, "user_id": payload.user_id}) if address_oid else None
    if not address:
        raise HTTPException(status_code=404, detail="Shipping address not found or does not belong to user")

    lines = []
    subtotal = Decimal("0")
    total_weight = Decimal("0")
    for item in payload.items:
        product = find_by_id("product", item.product_id)
        if not product or not product.get("is_active"):
            raise HTTPException(status_code=404, detail=f"Product with id {item.product_id} not found or inactive")
        if product["stock_quantity"] < item.quantity:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Insufficient stock for product {product['name']}. "
                    f"Available: {product['stock_quantity']}, requested: {item.quantity}"
                ),
            )
        unit_price = to_decimal(product["price"])
        subtotal += unit_price * item.quantity
        total_weight += to_decimal(product["weight"]) * item.quantity
        lines.append((product, item.quantity, unit_price))

    shipping_cost = shipping_cost_for_weight(total_weight)
    snapshot = {field: address.get(field) for field in ADDRESS_SNAPSHOT_FIELDS}
    snapshot["id"] = str(address["_id"])

    order = Order(
        user_id=payload.user_id,
        order_number=generate_order_number(),
        status="pending",
        total_amount=money_str(subtotal + shipping_cost),
        shipping_cost=money_str(shipping_cost),
        shipping_address=snapshot,
    )
    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        try:
            order_id = create_document("order", order)
            break
        except DuplicateKeyError:
            if attempt == ORDER_NUMBER_ATTEMPTS - 1:
                raise
            order.order_number = generate_order_number()

    reserved = []
    for product, quantity, unit_price in lines:
        # Decrement inventory
        result = collection("product").update_one(
            {"_id": product["_id"], "stock_quantity": {"$gte": quantity}},
            {"$inc": {"stock_quantity": -quantity}, "$set": {"updated_at": now()}},
        )
        if result.modified_count == 0:
            _release_stock(reserved)
            collection("order_item").delete_many({"order_id": order_id})
            collection("order").delete_one({"_id": to_object_id(order_id)})
            logger.warning("Order %s rolled back: stock for product %s changed", order.order_number, product["_id"])
            raise HTTPException(status_code=400, detail=f"Insufficient stock for product {product['name']}")
        reserved.append((product["_id"], quantity))
        create_document("order_item", OrderItem(
            order_id=order_id,
            product_id=str(product["_id"]),
            quantity=quantity,
            unit_price=money_str(unit_price),
            total_price=money_str(unit_price * quantity),
        ))

    logger.info("Created order %s for user %s, total %s", order.order_number, payload.user_id, order.total_amount)
    return serialize(find_by_id("order", order_id))


def get_orders(payload: Optional[GetOrdersInput] = None) -> Dict[str, Any]:
    payload = payload or GetOrdersInput()
    filt: Dict[str, Any] = {}
    if payload.user_id is not None:
        filt["user_id"] = payload.user_id
    if payload.status:
        filt["status"] = payload.status

    page, limit = page_params(payload.page, payload.limit)
    total = collection("order").count_documents(filt)
    cursor = (
        collection("order")
        .find(filt)
        .sort([("created_at", -1), ("_id", -1)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {"items": [serialize(o) for o in cursor], "total": total, "page": page, "limit": limit}


def get_order_by_id(order_id: str) -> Optional[Dict[str, Any]]:
    return serialize(find_by_id("order", order_id))


def get_orders_by_user_id(user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return get_orders(GetOrdersInput(user_id=user_id, page=page, limit=limit))


def update_order_status(payload: UpdateOrderStatusInput) -> Dict[str, Any]:
    order = find_by_id("order", payload.id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order with id {payload.id} not found")
    update: Dict[str, Any] = {"status": payload.status, "updated_at": now()}
    if "shipping_tracking_number" in payload.model_fields_set:
        update["shipping_tracking_number"] = payload.shipping_tracking_number
    collection("order").update_one({"_id": order["_id"]}, {"$set": update})
    logger.info("Order %s status %s -> %s", order["order_number"], order["status"], payload.status)
    return serialize(collection("order").find_one({"_id": order["_id"]}))


def cancel_order(order_id: str, user_id: str) -> Dict[str, Any]:
    order_oid = to_object_id(order_id)
    order = None
    if order_oid is not None:
        order = collection("order").find_one_and_update(
            {"_id": order_oid, "user_id": user_id, "status": "pending"},
            {"$set": {"status": "cancelled", "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not order:
        current = find_by_id("order", order_id)
        if not current or current["user_id"] != user_id:
            raise HTTPException(status_code=404, detail=f"Order with id {order_id} not found or does not belong to user")
        raise HTTPException(
            status_code=400,
            detail=f"Cannot cancel order with status '{current['status']}'. Only pending orders can be cancelled.",
        )

    for item in collection("order_item").find({"order_id": str(order["_id"])}):
        product_oid = to_object_id(item["product_id"])
        collection("product").update_one(
            {"_id": product_oid},
            {"$inc": {"stock_quantity": item["quantity"]}, "$set": {"updated_at": now()}},
        )
    logger.info("Cancelled order %s, stock restored", order["order_number"])
    return serialize(order)


def get_order_items(order_id: str) -> List[Dict[str, Any]]:
    return [serialize(it) for it in collection("order_item").find({"order_id": order_id}).sort("_id", 1)]
