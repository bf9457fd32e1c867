"""
Payment records and the gateway callback.

The gateway reports a `transaction_status` per transaction; it is folded into our four payment
statuses with `GATEWAY_STATUS_MAP`. Statuses the gateway may add later fall back to "pending".
"""
import logging
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from database import collection, create_document, now
from handlers.common import find_by_id, money_str, serialize, to_decimal
from schemas import Payment, PaymentNotification, ProcessPaymentInput

logger = logging.getLogger(__name__)

GATEWAY_STATUS_MAP = {
    "capture": "paid",
    "settlement": "paid",
    "pending": "pending",
    "cancel": "cancelled",
    "expire": "cancelled",
    "deny": "failed",
    "failure": "failed",
}


def map_gateway_status(transaction_status: Optional[str]) -> str:
    return GATEWAY_STATUS_MAP.get(transaction_status or "", "pending")


def process_payment(payload: ProcessPaymentInput) -> Dict[str, Any]:
    order = find_by_id("order", payload.order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order with ID {payload.order_id} not found")
    if collection("payment").find_one({"order_id": payload.order_id}):
        raise HTTPException(status_code=409, detail=f"Payment already exists for order {payload.order_id}")

    # Mock gateway transaction id until the real gateway is wired in
    transaction_id = f"MT-{int(time.time() * 1000)}-{payload.order_id}"
    payment = Payment(
        order_id=payload.order_id,
        payment_method=payload.payment_method,
        payment_status="pending",
        amount=order["total_amount"],
        midtrans_transaction_id=transaction_id,
        midtrans_payment_type=payload.payment_method,
    )
    try:
        payment_id = create_document("payment", payment)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"Payment already exists for order {payload.order_id}")
    logger.info("Payment %s opened for order %s", transaction_id, payload.order_id)
    return serialize(find_by_id("payment", payment_id))


def handle_payment_notification(notification: PaymentNotification) -> Dict[str, bool]:
    if not notification.transaction_id:
        raise HTTPException(status_code=400, detail="Missing transaction_id in notification")
    payment = collection("payment").find_one({"midtrans_transaction_id": notification.transaction_id})
    if not payment:
        logger.warning("Notification for unknown transaction %s", notification.transaction_id)
        raise HTTPException(
            status_code=404,
            detail=f"Payment not found for transaction ID: {notification.transaction_id}",
        )

    status = map_gateway_status(notification.transaction_status)
    stamp = now()
    collection("payment").update_one(
        {"_id": payment["_id"]},
        {"$set": {
            "payment_status": status,
            "midtrans_payment_type": notification.payment_type or payment.get("midtrans_payment_type"),
            "paid_at": stamp if status == "paid" else None,
            "updated_at": stamp,
        }},
    )
    if status == "paid":
        order = find_by_id("order", payment["order_id"])
        if order:
            collection("order").update_one(
                {"_id": order["_id"]},
                {"$set": {"status": "paid", "updated_at": stamp}},
            )
    logger.info(
        "Payment %s: gateway status %r -> %s",
        notification.transaction_id, notification.transaction_status, status,
    )
    return {"success": True}


def get_payment_by_order_id(order_id: str) -> Optional[Dict[str, Any]]:
    return serialize(collection("payment").find_one({"order_id": order_id}))


def check_payment_status(payment_id: str) -> Dict[str, Any]:
    payment = find_by_id("payment", payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"Payment with ID {payment_id} not found")
    return serialize(payment)


def refund_payment(payment_id: str, amount: Optional[float] = None) -> Dict[str, Any]:
    payment = find_by_id("payment", payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"Payment with ID {payment_id} not found")
    if payment["payment_status"] != "paid":
        raise HTTPException(status_code=400, detail="Cannot refund a payment that is not paid")

    paid = to_decimal(payment["amount"])
    refund = to_decimal(money_str(amount)) if amount is not None else paid
    if refund <= 0:
        raise HTTPException(status_code=400, detail="Refund amount must be at least 0.01")
    if refund > paid:
        raise HTTPException(status_code=400, detail="Refund amount cannot exceed payment amount")

    refund_id = f"REF-{int(time.time() * 1000)}-{payment_id}"
    if refund == paid:
        collection("payment").update_one(
            {"_id": payment["_id"]},
            {"$set": {"payment_status": "cancelled", "updated_at": now()}},
        )
    logger.info("Refund %s of %s issued for payment %s", refund_id, refund, payment_id)
    return {"success": True, "refund_id": refund_id}
