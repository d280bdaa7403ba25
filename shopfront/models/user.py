"""User, buyer/seller profile, address and credential models."""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Index,
    Uuid, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
import enum

from shopfront.core.database import Base


class UserRole(str, enum.Enum):
    """User roles. USER is a registered account that has no role assigned yet."""
    USER = "USER"
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class User(Base):
    """User model."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone_number = Column(String(20), unique=True)

    # Status
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime)

    # Relationships
    buyer = relationship(
        "Buyer", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    seller = relationship(
        "Seller", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    otp = relationship("Otp", uselist=False, cascade="all, delete-orphan", passive_deletes=True)
    refresh_tokens = relationship("RefreshToken", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<User {self.email}>"


class Buyer(Base):
    """Buyer profile, created when a user verifies an OTP for the BUYER role."""

    __tablename__ = "buyers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="buyer")
    addresses = relationship(
        "Address", back_populates="buyer",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    cart = relationship(
        "Cart", back_populates="buyer", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    wishlist = relationship(
        "Wishlist", back_populates="buyer",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    orders = relationship("Order", back_populates="buyer", passive_deletes=True)
    reviews = relationship("Review", back_populates="buyer", passive_deletes=True)

    def __repr__(self):
        return f"<Buyer {self.id}>"


class Seller(Base):
    """Seller profile with KYC identifiers; verified by an admin."""

    __tablename__ = "sellers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    store_name = Column(String(255), nullable=False)
    aadhar_card = Column(String(12), unique=True, nullable=False)
    pan_card = Column(String(10), unique=True, nullable=False)
    gst_number = Column(String(15), unique=True)

    # Reputation, recomputed from product reviews
    rating = Column(Float)
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="seller")
    products = relationship(
        "Product", back_populates="seller",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    orders = relationship("Order", back_populates="seller", passive_deletes=True)

    def __repr__(self):
        return f"<Seller {self.store_name}>"


class Address(Base):
    """Buyer shipping address."""

    __tablename__ = "addresses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=False)
    address1 = Column(String(500), nullable=False)
    address2 = Column(String(500))
    pincode = Column(String(10), nullable=False)
    city = Column(String(100), nullable=False)
    landmark = Column(String(255))
    state = Column(String(100), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    buyer = relationship("Buyer", back_populates="addresses")

    # One default address per buyer
    __table_args__ = (
        Index(
            "uq_address_default_per_buyer", "buyer_id", unique=True,
            postgresql_where=is_default.is_(True),
            sqlite_where=is_default.is_(True),
        ),
    )

    def __repr__(self):
        return f"<Address {self.city} {self.pincode}>"


class Otp(Base):
    """Pending one-time passcode for role assignment; one per user."""

    __tablename__ = "otps"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Otp user={self.user_id}>"


class PasswordResetToken(Base):
    """Hashed password reset token."""

    __tablename__ = "password_reset_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")


class RefreshToken(Base):
    """Hashed refresh token issued at sign-in."""

    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="refresh_tokens")
