"""
Database Schemas for the Storefront

Each document model corresponds to a MongoDB collection. The collection name is the lowercase
(snake_case) of the class name.

Example: class CustomerAddress -> collection "customer_address"

The *Input models further down validate procedure arguments. Update inputs are partial: only the
fields a caller actually sent are applied (`model_dump(exclude_unset=True)`), and an explicit
null is ignored unless the column itself is optional.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

UserRole = Literal["admin", "customer"]
OrderStatus = Literal["pending", "paid", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "cancelled"]

ORDER_STATUSES = ("pending", "paid", "processing", "shipped", "delivered", "cancelled")


# Core domain models

class User(BaseModel):
    email: EmailStr
    password_hash: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole = "customer"


class Category(BaseModel):
    name: str
    description: Optional[str] = None


class Product(BaseModel):
    name: str
    description: Optional[str] = None
    price: str = Field(..., description="Fixed-point decimal string")
    stock_quantity: int = Field(0, ge=0)
    category_id: str
    image_url: Optional[str] = None
    weight: str = Field(..., description="Weight in grams, fixed-point decimal string")
    is_active: bool = True


class CustomerAddress(BaseModel):
    user_id: str
    name: str
    phone: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    province: str
    postal_code: str
    is_default: bool = False


class CartItem(BaseModel):
    user_id: str
    product_id: str
    quantity: int = Field(1, ge=1)


class Order(BaseModel):
    user_id: str
    order_number: str
    status: OrderStatus = "pending"
    total_amount: str
    shipping_cost: str
    shipping_address: dict
    shipping_tracking_number: Optional[str] = None


class OrderItem(BaseModel):
    order_id: str
    product_id: str
    quantity: int = Field(..., ge=1)
    unit_price: str
    total_price: str


class Payment(BaseModel):
    order_id: str
    payment_method: str
    payment_status: PaymentStatus = "pending"
    amount: str
    midtrans_transaction_id: Optional[str] = None
    midtrans_payment_type: Optional[str] = None
    paid_at: Optional[datetime] = None


# Procedure inputs

class CreateUserInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str
    phone: Optional[str] = None
    role: UserRole = "customer"


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class UpdateUserInput(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRole] = None


class CreateCategoryInput(BaseModel):
    name: str
    description: Optional[str] = None


class UpdateCategoryInput(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None


class CreateProductInput(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    stock_quantity: int = Field(..., ge=0)
    category_id: str
    image_url: Optional[str] = None
    weight: float = Field(..., gt=0)
    is_active: bool = True


class UpdateProductInput(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None


class GetProductsInput(BaseModel):
    category_id: Optional[str] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    is_active: Optional[bool] = None


class CreateCustomerAddressInput(BaseModel):
    user_id: str
    name: str
    phone: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    province: str
    postal_code: str
    is_default: bool = False


class UpdateCustomerAddressInput(BaseModel):
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    is_default: Optional[bool] = None


class AddToCartInput(BaseModel):
    user_id: str
    product_id: str
    quantity: int = Field(1, gt=0)


class UpdateCartItemInput(BaseModel):
    id: str
    quantity: int = Field(..., gt=0)


class OrderItemInput(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)


class CreateOrderInput(BaseModel):
    user_id: str
    shipping_address_id: str
    items: List[OrderItemInput] = Field(..., min_length=1)


class GetOrdersInput(BaseModel):
    user_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class UpdateOrderStatusInput(BaseModel):
    id: str
    status: OrderStatus
    shipping_tracking_number: Optional[str] = None


class ProcessPaymentInput(BaseModel):
    order_id: str
    payment_method: str


class PaymentNotification(BaseModel):
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None
    payment_type: Optional[str] = None


class CalculateShippingInput(BaseModel):
    origin_city_id: Optional[int] = None
    destination_city_id: int
    weight: float
    courier: str
