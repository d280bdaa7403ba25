"""Cart, wishlist and order schemas."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from shopfront.models.order import OrderStatus
from shopfront.schemas.product import ProductSummary


class CartItemCreate(BaseModel):
    """Schema for adding a product to the cart."""
    product_id: UUID
    quantity: int = Field(1, ge=1, le=1000)


class CartItemUpdate(BaseModel):
    """Schema for changing a cart line quantity."""
    quantity: int = Field(..., ge=1, le=1000)


class CartItemResponse(BaseModel):
    """Schema for cart line response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    quantity: int
    price: float
    product: ProductSummary
    created_at: datetime


class CartResponse(BaseModel):
    """Schema for cart response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    buyer_id: UUID
    total_price: float
    items: List[CartItemResponse] = []
    updated_at: datetime


class Count(BaseModel):
    count: int


class CartLineCheck(BaseModel):
    """Availability and price check of one cart line."""
    product_id: UUID
    title: str
    quantity: int
    stock: int
    price: float
    current_price: float
    is_available: bool
    is_price_correct: bool


class CartValidation(BaseModel):
    """Schema for cart validation response."""
    valid: bool
    items: List[CartLineCheck]


class CheckoutRequest(BaseModel):
    """Schema for checkout."""
    address_id: Optional[UUID] = None


class OrderItemResponse(BaseModel):
    """Schema for order item response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID] = None
    title: str
    quantity: int
    unit_price: float


class OrderResponse(BaseModel):
    """Schema for order response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    buyer_id: UUID
    seller_id: Optional[UUID] = None
    address_id: Optional[UUID] = None
    total_amount: float
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []


class CheckoutResponse(BaseModel):
    """Orders created by one checkout, one per seller."""
    orders: List[OrderResponse]
    total_amount: float


class OrderStatusUpdate(BaseModel):
    """Schema for changing order status."""
    status: OrderStatus


class WishlistCreate(BaseModel):
    """Schema for adding a product to the wishlist."""
    product_id: UUID


class WishlistResponse(BaseModel):
    """Schema for wishlist entry response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    product: ProductSummary
    created_at: datetime
