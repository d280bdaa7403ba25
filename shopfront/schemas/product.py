"""Product and review schemas."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, computed_field, model_validator

from shopfront.models.product import ProductCategory, ProductStatus
from shopfront.services.catalog import effective_price


class ProductImageResponse(BaseModel):
    """Schema for product image response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    position: int


class ProductDetailsBase(BaseModel):
    """Fabric and origin details."""
    fabric_type: List[str] = Field(..., min_length=1)
    origin: str = Field(..., min_length=2, max_length=100)
    closure_type: str = Field(..., min_length=2, max_length=100)
    country_of_origin: str = Field(..., min_length=2, max_length=100)


class ProductDetailsResponse(ProductDetailsBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID


class ProductVariantBase(BaseModel):
    """Color/size variant."""
    color: str = Field(..., min_length=1, max_length=50)
    size: str = Field(..., min_length=1, max_length=20)
    stock: int = Field(0, ge=0)
    pattern: str = Field(..., max_length=100)
    occasion: str = Field(..., max_length=100)
    sleeve_length: str = Field(..., max_length=50)
    types: str = Field(..., max_length=100)
    neck: str = Field(..., max_length=50)
    length: str = Field(..., max_length=50)
    hemline: str = Field(..., max_length=50)


class ProductVariantResponse(ProductVariantBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID


class UpperWearSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    length: str
    chest: str
    shoulder: str
    sleeve: str
    neck: str


class LegWearSchema(BaseModel):
    """Measurements shared by bottom and lower wear."""
    model_config = ConfigDict(from_attributes=True)

    length: str
    waist: str
    hip: str
    thigh: str
    knee: str
    ankle: str


class SpecificationSchema(BaseModel):
    """Size chart; exactly one measurement block must be given."""
    model_config = ConfigDict(from_attributes=True)

    upper_wear: Optional[UpperWearSchema] = None
    bottom_wear: Optional[LegWearSchema] = None
    lower_wear: Optional[LegWearSchema] = None

    @model_validator(mode="after")
    def exactly_one_block(self):
        blocks = [self.upper_wear, self.bottom_wear, self.lower_wear]
        if sum(block is not None for block in blocks) != 1:
            raise ValueError(
                "Specification needs exactly one of upper_wear, bottom_wear or lower_wear"
            )
        return self


class ProductBase(BaseModel):
    """Base product schema."""
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    price: float = Field(..., gt=0)
    discount: float = Field(0.0, ge=0, le=100)
    category: ProductCategory
    stock: int = Field(0, ge=0)


class ProductCreate(ProductBase):
    """Schema for creating a product."""
    bulk_upload: Optional[str] = Field(None, max_length=100)
    details: Optional[ProductDetailsBase] = None
    variants: List[ProductVariantBase] = []
    image_urls: List[str] = []
    specification: Optional[SpecificationSchema] = None


class ProductUpdate(BaseModel):
    """Schema for updating a product. Verification status has its own endpoint."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    price: Optional[float] = Field(None, gt=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    category: Optional[ProductCategory] = None
    stock: Optional[int] = Field(None, ge=0)


class ProductStatusUpdate(BaseModel):
    """Schema for changing verification status."""
    status: ProductStatus


class BulkDeleteRequest(BaseModel):
    """Schema for deleting several products."""
    product_ids: List[UUID] = Field(..., min_length=1)


class BulkResult(BaseModel):
    """Outcome of a bulk operation."""
    count: int
    message: str


class ProductSummary(BaseModel):
    """Product fields shown inside carts, wishlists and orders."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    price: float
    discount: float
    stock: int
    status: ProductStatus

    @computed_field
    @property
    def effective_price(self) -> float:
        return effective_price(self.price, self.discount)


class ProductResponse(ProductBase):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: ProductStatus
    bulk_upload: Optional[str] = None
    seller_id: UUID
    created_at: datetime
    updated_at: datetime
    images: List[ProductImageResponse] = []
    average_rating: Optional[float] = None
    review_count: int = 0

    @computed_field
    @property
    def effective_price(self) -> float:
        return effective_price(self.price, self.discount)


class ProductDetailResponse(ProductResponse):
    """Schema for a single product with its catalog data."""
    details: Optional[ProductDetailsResponse] = None
    variants: List[ProductVariantResponse] = []
    specification: Optional[SpecificationSchema] = None


class ProductList(BaseModel):
    """Schema for product list response."""
    items: List[ProductResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ReviewCreate(BaseModel):
    """Schema for creating a review."""
    product_id: UUID
    rating: float = Field(..., ge=0, le=5)
    comment: str = Field(..., min_length=1, max_length=2000)


class ReviewUpdate(BaseModel):
    """Schema for updating a review."""
    rating: Optional[float] = Field(None, ge=0, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=2000)


class ReviewResponse(BaseModel):
    """Schema for review response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    buyer_id: UUID
    seller_id: UUID
    rating: float
    comment: str
    reviewer_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProductReviews(BaseModel):
    """Reviews of one product with their aggregate."""
    items: List[ReviewResponse]
    average_rating: Optional[float] = None
    count: int
