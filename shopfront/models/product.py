"""Product catalog and review models."""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, JSON,
    DateTime, ForeignKey, Enum as SQLEnum, Index, Uuid,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from shopfront.core.database import Base


class ProductStatus(str, enum.Enum):
    """Product verification status."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProductCategory(str, enum.Enum):
    """Product category."""
    MENS = "MENS"
    WOMENS = "WOMENS"
    KIDS = "KIDS"
    OTHER = "OTHER"


class Product(Base):
    """Product model."""

    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False, index=True)
    discount = Column(Float, default=0.0, nullable=False)  # percent

    # Details
    category = Column(SQLEnum(ProductCategory), nullable=False, index=True)
    status = Column(SQLEnum(ProductStatus), default=ProductStatus.PENDING, nullable=False, index=True)
    stock = Column(Integer, default=0, nullable=False)
    bulk_upload = Column(String(100))
    seller_id = Column(Uuid, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    seller = relationship("Seller", back_populates="products")
    details = relationship(
        "ProductDetails", back_populates="product", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    variants = relationship(
        "ProductVariant", back_populates="product",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    images = relationship(
        "ProductImage", back_populates="product", order_by="ProductImage.position",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    specification = relationship(
        "Specification", back_populates="product", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    reviews = relationship("Review", back_populates="product", passive_deletes=True)

    # Indexes for common queries
    __table_args__ = (
        Index('idx_product_status_created', 'status', 'created_at'),
        Index('idx_product_category_status', 'category', 'status'),
        Index('idx_product_seller_status', 'seller_id', 'status'),
        CheckConstraint('price > 0', name='price_positive'),
        CheckConstraint('stock >= 0', name='stock_not_negative'),
        CheckConstraint('discount >= 0 AND discount <= 100', name='discount_range'),
    )

    def __repr__(self):
        return f"<Product {self.title}>"


class ProductDetails(Base):
    """Fabric and origin details of a product."""

    __tablename__ = "product_details"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False)
    fabric_type = Column(JSON, nullable=False)
    origin = Column(String(100), nullable=False)
    closure_type = Column(String(100), nullable=False)
    country_of_origin = Column(String(100), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="details")


class ProductVariant(Base):
    """Color/size variant of a product with its own stock."""

    __tablename__ = "product_variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    color = Column(String(50), nullable=False)
    size = Column(String(20), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    pattern = Column(String(100), nullable=False)
    occasion = Column(String(100), nullable=False)
    sleeve_length = Column(String(50), nullable=False)
    types = Column(String(100), nullable=False)
    neck = Column(String(50), nullable=False)
    length = Column(String(50), nullable=False)
    hemline = Column(String(50), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        Index('idx_variant_size_color', 'size', 'color'),
    )


class ProductImage(Base):
    """Product image model."""

    __tablename__ = "product_images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    position = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="images")

    def __repr__(self):
        return f"<ProductImage {self.id}>"


class Specification(Base):
    """Size chart of a product. Exactly one measurement block is attached."""

    __tablename__ = "specifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="specification")
    upper_wear = relationship(
        "UpperWear", uselist=False, cascade="all, delete-orphan", passive_deletes=True,
    )
    bottom_wear = relationship(
        "BottomWear", uselist=False, cascade="all, delete-orphan", passive_deletes=True,
    )
    lower_wear = relationship(
        "LowerWear", uselist=False, cascade="all, delete-orphan", passive_deletes=True,
    )


class UpperWear(Base):
    """Upper wear measurements."""

    __tablename__ = "upper_wear"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    specification_id = Column(
        Uuid, ForeignKey("specifications.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    length = Column(String(20), nullable=False)
    chest = Column(String(20), nullable=False)
    shoulder = Column(String(20), nullable=False)
    sleeve = Column(String(20), nullable=False)
    neck = Column(String(20), nullable=False)


class BottomWear(Base):
    """Bottom wear measurements."""

    __tablename__ = "bottom_wear"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    specification_id = Column(
        Uuid, ForeignKey("specifications.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    length = Column(String(20), nullable=False)
    waist = Column(String(20), nullable=False)
    hip = Column(String(20), nullable=False)
    thigh = Column(String(20), nullable=False)
    knee = Column(String(20), nullable=False)
    ankle = Column(String(20), nullable=False)


class LowerWear(Base):
    """Lower wear measurements."""

    __tablename__ = "lower_wear"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    specification_id = Column(
        Uuid, ForeignKey("specifications.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    length = Column(String(20), nullable=False)
    waist = Column(String(20), nullable=False)
    hip = Column(String(20), nullable=False)
    thigh = Column(String(20), nullable=False)
    knee = Column(String(20), nullable=False)
    ankle = Column(String(20), nullable=False)


class Review(Base):
    """Buyer review of a product."""

    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = Column(Uuid, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False, index=True)

    rating = Column(Float, nullable=False)
    comment = Column(Text, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="reviews")
    buyer = relationship("Buyer", back_populates="reviews")

    # Constraints
    __table_args__ = (
        UniqueConstraint('buyer_id', 'product_id', name='uq_review_buyer_product'),
        CheckConstraint('rating >= 0 AND rating <= 5', name='rating_range'),
    )

    def __repr__(self):
        return f"<Review {self.id}>"
