"""Pydantic schemas for API validation."""
from shopfront.schemas.user import (
    UserCreate, UserUpdate, UserResponse, UserLogin, Token, AccessToken,
    AddressCreate, AddressUpdate, AddressResponse
)
from shopfront.schemas.product import (
    ProductCreate, ProductUpdate, ProductResponse, ProductDetailResponse,
    ProductList, ReviewCreate, ReviewUpdate, ReviewResponse
)
from shopfront.schemas.order import (
    CartItemCreate, CartItemUpdate, CartResponse, CheckoutRequest,
    OrderResponse, OrderStatusUpdate, WishlistCreate, WishlistResponse
)

__all__ = [
    "UserCreate", "UserUpdate", "UserResponse", "UserLogin", "Token", "AccessToken",
    "AddressCreate", "AddressUpdate", "AddressResponse",
    "ProductCreate", "ProductUpdate", "ProductResponse", "ProductDetailResponse",
    "ProductList", "ReviewCreate", "ReviewUpdate", "ReviewResponse",
    "CartItemCreate", "CartItemUpdate", "CartResponse", "CheckoutRequest",
    "OrderResponse", "OrderStatusUpdate", "WishlistCreate", "WishlistResponse",
]
