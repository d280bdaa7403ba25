"""User, account and address schemas."""
import re
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator

from shopfront.models.user import UserRole


def check_password_strength(value: str) -> str:
    """Require lower, upper, digit and special characters."""
    rules = [
        (r"[a-z]", "Password must contain at least one lowercase letter"),
        (r"[A-Z]", "Password must contain at least one uppercase letter"),
        (r"[0-9]", "Password must contain at least one number"),
        (r"[^a-zA-Z0-9]", "Password must contain at least one special character"),
    ]
    for pattern, message in rules:
        if not re.search(pattern, value):
            raise ValueError(message)
    return value


class UserCreate(BaseModel):
    """Schema for registering a user."""
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=7, max_length=20)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)


class UserUpdate(BaseModel):
    """Schema for updating the signed-in account."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=7, max_length=20)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_password_strength(v)


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class Token(BaseModel):
    """Schema for authentication tokens."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessToken(BaseModel):
    """Schema for a refreshed access token."""
    access_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    """Schema carrying a refresh token."""
    refresh_token: str


class Message(BaseModel):
    """Plain acknowledgement."""
    message: str


class BuyerResponse(BaseModel):
    """Schema for buyer profile response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    created_at: datetime


class SellerResponse(BaseModel):
    """Schema for seller profile response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    store_name: str
    aadhar_card: str
    pan_card: str
    gst_number: Optional[str] = None
    rating: Optional[float] = None
    is_verified: bool
    created_at: datetime


class UserResponse(BaseModel):
    """Schema for user response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    phone_number: Optional[str] = None
    role: UserRole
    is_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None
    buyer: Optional[BuyerResponse] = None
    seller: Optional[SellerResponse] = None


class UserSummary(BaseModel):
    """Public part of a user."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    phone_number: Optional[str] = None


class SellerDetail(SellerResponse):
    """Seller profile with its account."""
    user: UserSummary


class BuyerDetail(BuyerResponse):
    """Buyer profile with its account."""
    user: UserSummary


class SellerFields(BaseModel):
    """KYC fields of a seller."""
    store_name: Optional[str] = Field(None, min_length=2, max_length=255)
    aadhar_card: Optional[str] = Field(None, min_length=12, max_length=12)
    pan_card: Optional[str] = Field(None, min_length=10, max_length=10)
    gst_number: Optional[str] = Field(None, min_length=1, max_length=15)


class AssignRoleRequest(SellerFields):
    """Schema for OTP verified role assignment."""
    otp: str = Field(..., pattern=r"^\d{6}$")
    role: UserRole

    @field_validator("role")
    @classmethod
    def assignable_role(cls, v: UserRole) -> UserRole:
        if v not in (UserRole.BUYER, UserRole.SELLER):
            raise ValueError("Role must be BUYER or SELLER")
        return v


class SellerProfileUpdate(SellerFields):
    """Schema for a seller updating their store profile."""


class BuyerProfileUpdate(BaseModel):
    """Schema for a buyer updating their profile."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone_number: Optional[str] = Field(None, min_length=7, max_length=20)


class VerifySellerRequest(BaseModel):
    """Schema for admin seller verification."""
    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    """Schema for requesting a password reset link."""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Schema for setting a new password with a reset token."""
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)


class AddressBase(BaseModel):
    """Base address schema."""
    full_name: str = Field(..., min_length=2, max_length=255)
    phone_number: str = Field(..., min_length=7, max_length=20)
    address1: str = Field(..., min_length=3, max_length=500)
    address2: Optional[str] = Field(None, max_length=500)
    pincode: str = Field(..., min_length=4, max_length=10)
    city: str = Field(..., min_length=2, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    state: str = Field(..., min_length=2, max_length=100)


class AddressCreate(AddressBase):
    """Schema for creating an address."""
    is_default: bool = False


class AddressUpdate(BaseModel):
    """Schema for updating an address."""
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone_number: Optional[str] = Field(None, min_length=7, max_length=20)
    address1: Optional[str] = Field(None, min_length=3, max_length=500)
    address2: Optional[str] = Field(None, max_length=500)
    pincode: Optional[str] = Field(None, min_length=4, max_length=10)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    is_default: Optional[bool] = None


class AddressResponse(AddressBase):
    """Schema for address response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    buyer_id: UUID
    is_default: bool
    created_at: datetime
    updated_at: datetime
