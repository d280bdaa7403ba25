"""Cart, wishlist and order models."""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey,
    Enum as SQLEnum, Index, Uuid, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from shopfront.core.database import Base


class OrderStatus(str, enum.Enum):
    """Order status."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Cart(Base):
    """Shopping cart, one per buyer."""

    __tablename__ = "carts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), unique=True, nullable=False)
    total_price = Column(Float, default=0.0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    buyer = relationship("Buyer", back_populates="cart")
    items = relationship(
        "CartItem", back_populates="cart", order_by="CartItem.created_at",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self):
        return f"<Cart {self.id}>"


class CartItem(Base):
    """Cart line with the unit price captured when the product was added."""

    __tablename__ = "cart_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id = Column(Uuid, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, default=1, nullable=False)
    price = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint('cart_id', 'product_id', name='uq_cart_item_product'),
        CheckConstraint('quantity >= 1', name='cart_quantity_positive'),
    )


class Wishlist(Base):
    """Saved-for-later product of a buyer."""

    __tablename__ = "wishlists"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    buyer = relationship("Buyer", back_populates="wishlist")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint('buyer_id', 'product_id', name='uq_wishlist_buyer_product'),
    )


class Order(Base):
    """Order placed with one seller during checkout."""

    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = Column(Uuid, ForeignKey("sellers.id", ondelete="SET NULL"), index=True)
    address_id = Column(Uuid, ForeignKey("addresses.id", ondelete="SET NULL"))

    total_amount = Column(Float, nullable=False)
    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    buyer = relationship("Buyer", back_populates="orders")
    seller = relationship("Seller", back_populates="orders")
    address = relationship("Address")
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_order_buyer_status', 'buyer_id', 'status'),
        Index('idx_order_seller_status', 'seller_id', 'status'),
    )

    def __repr__(self):
        return f"<Order {self.id} {self.status}>"


class OrderItem(Base):
    """Ordered product with the title and price at checkout time."""

    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="SET NULL"), index=True)
    title = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='order_quantity_positive'),
    )
