import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, ValidationError

import database
from handlers import addresses, auth, cart, categories, orders, payments, products, shipping, users
from schemas import (
    AddToCartInput,
    CalculateShippingInput,
    CreateCategoryInput,
    CreateCustomerAddressInput,
    CreateOrderInput,
    CreateProductInput,
    CreateUserInput,
    GetOrdersInput,
    GetProductsInput,
    LoginInput,
    OrderItemInput,
    OrderStatus,
    PaymentNotification,
    ProcessPaymentInput,
    UpdateCartItemInput,
    UpdateCategoryInput,
    UpdateCustomerAddressInput,
    UpdateOrderStatusInput,
    UpdateProductInput,
    UpdateUserInput,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# App setup
app = FastAPI(title="Storefront API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_indexes():
    if database.db is not None:
        database.ensure_indexes()


security = HTTPBearer()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    return auth.load_token_user(credentials.credentials)


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def uid(user: dict) -> str:
    return str(user["_id"])


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


def with_id(model, id_value: str, body: Dict[str, Any]):
    """Validate a partial-update body against an *Input model, taking the id from the path."""
    try:
        return model.model_validate({**body, "id": id_value})
    except ValidationError as e:
        raise RequestValidationError(e.errors())


# Schemas (request bodies where the user comes from the token)
class AddressIn(BaseModel):
    name: str
    phone: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    province: str
    postal_code: str
    is_default: bool = False


class CartItemIn(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)


class CartQuantityIn(BaseModel):
    quantity: int = Field(..., gt=0)


class OrderIn(BaseModel):
    shipping_address_id: str
    items: List[OrderItemInput] = Field(..., min_length=1)


class StockIn(BaseModel):
    quantity: int


class RefundIn(BaseModel):
    amount: Optional[float] = Field(None, gt=0)


# Health and helpers
@app.get("/")
def root():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Auth
@app.post("/auth/register")
def register(payload: CreateUserInput):
    # self-registration never grants admin
    return auth.register(payload.model_copy(update={"role": "customer"}))


@app.post("/auth/login")
def login(payload: LoginInput):
    return auth.login(payload)


@app.get("/auth/verify")
def verify(credentials: HTTPAuthorizationCredentials = Depends(security)):
    return auth.verify_token(credentials.credentials)


@app.get("/me")
def me(current_user: dict = Depends(get_current_user)):
    return auth.public_user(current_user)


@app.put("/me")
def update_profile(update: Dict[str, Any] = Body(...), current_user: dict = Depends(get_current_user)):
    allowed = {"email", "full_name", "phone"}
    update = {k: v for k, v in update.items() if k in allowed}
    return users.update_user(with_id(UpdateUserInput, uid(current_user), update))


# Users (admin)
@app.get("/users")
def list_users(admin: dict = Depends(require_admin)):
    return users.get_users()


@app.get("/users/{user_id}")
def get_user(user_id: str, admin: dict = Depends(require_admin)):
    user = users.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    return user


@app.put("/users/{user_id}")
def update_user(user_id: str, payload: Dict[str, Any] = Body(...), admin: dict = Depends(require_admin)):
    return users.update_user(with_id(UpdateUserInput, user_id, payload))


@app.delete("/users/{user_id}")
def delete_user(user_id: str, admin: dict = Depends(require_admin)):
    return users.delete_user(user_id)


# Categories
@app.get("/categories")
def list_categories():
    return categories.get_categories()


@app.get("/categories/{category_id}")
def get_category(category_id: str):
    category = categories.get_category_by_id(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@app.post("/categories")
def create_category(payload: CreateCategoryInput, admin: dict = Depends(require_admin)):
    return categories.create_category(payload)


@app.put("/categories/{category_id}")
def update_category(category_id: str, payload: Dict[str, Any] = Body(...), admin: dict = Depends(require_admin)):
    return categories.update_category(with_id(UpdateCategoryInput, category_id, payload))


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, admin: dict = Depends(require_admin)):
    return categories.delete_category(category_id)


# Products
@app.get("/products")
def list_products(category_id: Optional[str] = None, search: Optional[str] = None,
                  is_active: Optional[bool] = None, page: int = Query(1, ge=1),
                  limit: int = Query(10, ge=1, le=100)):
    return products.get_products(GetProductsInput(
        category_id=category_id, search=search, is_active=is_active, page=page, limit=limit,
    ))


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = products.get_product_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product with id {product_id} not found")
    return product


@app.post("/products")
def create_product(payload: CreateProductInput, admin: dict = Depends(require_admin)):
    return products.create_product(payload)


@app.put("/products/{product_id}")
def update_product(product_id: str, payload: Dict[str, Any] = Body(...), admin: dict = Depends(require_admin)):
    return products.update_product(with_id(UpdateProductInput, product_id, payload))


@app.put("/products/{product_id}/stock")
def update_product_stock(product_id: str, payload: StockIn, admin: dict = Depends(require_admin)):
    return products.update_product_stock(product_id, payload.quantity)


@app.delete("/products/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    return products.delete_product(product_id)


# Addresses
def own_address(address_id: str, user: dict) -> dict:
    address = addresses.get_address_by_id(address_id)
    if not address or (address["user_id"] != uid(user) and not is_admin(user)):
        raise HTTPException(status_code=404, detail="Address not found")
    return address


@app.get("/addresses")
def list_addresses(user: dict = Depends(get_current_user)):
    return addresses.get_addresses_by_user_id(uid(user))


@app.post("/addresses")
def create_address(payload: AddressIn, user: dict = Depends(get_current_user)):
    return addresses.create_address(CreateCustomerAddressInput(user_id=uid(user), **payload.model_dump()))


@app.get("/addresses/{address_id}")
def get_address(address_id: str, user: dict = Depends(get_current_user)):
    return own_address(address_id, user)


@app.put("/addresses/{address_id}")
def update_address(address_id: str, payload: Dict[str, Any] = Body(...), user: dict = Depends(get_current_user)):
    own_address(address_id, user)
    return addresses.update_address(with_id(UpdateCustomerAddressInput, address_id, payload))


@app.delete("/addresses/{address_id}")
def delete_address(address_id: str, user: dict = Depends(get_current_user)):
    own_address(address_id, user)
    return addresses.delete_address(address_id)


@app.post("/addresses/{address_id}/default")
def set_default_address(address_id: str, user: dict = Depends(get_current_user)):
    return addresses.set_default_address(address_id, uid(user))


# Cart
@app.get("/cart")
def get_cart(user: dict = Depends(get_current_user)):
    return cart.get_cart_by_user_id(uid(user))


@app.get("/cart/total")
def get_cart_total(user: dict = Depends(get_current_user)):
    return cart.get_cart_total(uid(user))


@app.post("/cart/add")
def cart_add(item: CartItemIn, user: dict = Depends(get_current_user)):
    return cart.add_to_cart(AddToCartInput(user_id=uid(user), **item.model_dump()))


@app.put("/cart/items/{cart_item_id}")
def cart_update(cart_item_id: str, payload: CartQuantityIn, user: dict = Depends(get_current_user)):
    return cart.update_cart_item(UpdateCartItemInput(id=cart_item_id, quantity=payload.quantity), user_id=uid(user))


@app.delete("/cart/items/{cart_item_id}")
def cart_remove(cart_item_id: str, user: dict = Depends(get_current_user)):
    return cart.remove_cart_item(cart_item_id, uid(user))


@app.delete("/cart")
def cart_clear(user: dict = Depends(get_current_user)):
    return cart.clear_cart(uid(user))


# Checkout & Orders
def visible_order(order_id: str, user: dict) -> dict:
    order = orders.get_order_by_id(order_id)
    if not order or (order["user_id"] != uid(user) and not is_admin(user)):
        raise HTTPException(status_code=404, detail=f"Order with id {order_id} not found")
    return order


@app.post("/orders")
def create_order(payload: OrderIn, user: dict = Depends(get_current_user)):
    return orders.create_order(CreateOrderInput(user_id=uid(user), **payload.model_dump()))


@app.get("/orders")
def list_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                user: dict = Depends(get_current_user)):
    return orders.get_orders_by_user_id(uid(user), page, limit)


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: dict = Depends(get_current_user)):
    return visible_order(order_id, user)


@app.get("/orders/{order_id}/items")
def get_order_items(order_id: str, user: dict = Depends(get_current_user)):
    visible_order(order_id, user)
    return orders.get_order_items(order_id)


@app.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, user: dict = Depends(get_current_user)):
    return orders.cancel_order(order_id, uid(user))


@app.get("/admin/orders")
def admin_list_orders(user_id: Optional[str] = None, status: Optional[OrderStatus] = None,
                      page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                      admin: dict = Depends(require_admin)):
    return orders.get_orders(GetOrdersInput(user_id=user_id, status=status, page=page, limit=limit))


@app.put("/admin/orders/{order_id}/status")
def admin_update_order_status(order_id: str, payload: Dict[str, Any] = Body(...),
                              admin: dict = Depends(require_admin)):
    return orders.update_order_status(with_id(UpdateOrderStatusInput, order_id, payload))


# Payments
@app.post("/payments")
def create_payment(payload: ProcessPaymentInput, user: dict = Depends(get_current_user)):
    visible_order(payload.order_id, user)
    return payments.process_payment(payload)


@app.post("/payments/notification")
def payment_notification(notification: PaymentNotification):
    return payments.handle_payment_notification(notification)


@app.get("/payments/order/{order_id}")
def get_payment_for_order(order_id: str, user: dict = Depends(get_current_user)):
    visible_order(order_id, user)
    payment = payments.get_payment_by_order_id(order_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"No payment for order {order_id}")
    return payment


@app.get("/payments/{payment_id}")
def get_payment_status(payment_id: str, user: dict = Depends(get_current_user)):
    payment = payments.check_payment_status(payment_id)
    visible_order(payment["order_id"], user)
    return payment


@app.post("/payments/{payment_id}/refund")
def refund_payment(payment_id: str, payload: Optional[RefundIn] = None, admin: dict = Depends(require_admin)):
    return payments.refund_payment(payment_id, payload.amount if payload else None)


# Shipping
@app.post("/shipping/cost")
def shipping_cost(payload: CalculateShippingInput):
    return shipping.calculate_shipping_cost(payload)


@app.get("/shipping/cities")
def shipping_cities():
    return shipping.get_cities()


@app.get("/shipping/provinces")
def shipping_provinces():
    return shipping.get_provinces()


@app.get("/shipping/couriers")
def shipping_couriers():
    return shipping.get_couriers()


@app.get("/shipping/track")
def shipping_track(tracking_number: str = "", courier: str = ""):
    return shipping.track_shipment(tracking_number, courier)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
