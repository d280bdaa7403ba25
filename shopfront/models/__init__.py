"""Database models."""
from shopfront.models.user import (
    User, UserRole, Buyer, Seller, Address, Otp, PasswordResetToken, RefreshToken
)
from shopfront.models.product import (
    Product, ProductStatus, ProductCategory, ProductDetails, ProductVariant,
    ProductImage, Specification, UpperWear, BottomWear, LowerWear, Review
)
from shopfront.models.order import Cart, CartItem, Wishlist, Order, OrderItem, OrderStatus

__all__ = [
    "User", "UserRole", "Buyer", "Seller", "Address",
    "Otp", "PasswordResetToken", "RefreshToken",
    "Product", "ProductStatus", "ProductCategory", "ProductDetails",
    "ProductVariant", "ProductImage", "Specification",
    "UpperWear", "BottomWear", "LowerWear", "Review",
    "Cart", "CartItem", "Wishlist", "Order", "OrderItem", "OrderStatus",
]
