"""Product endpoints."""
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.config import settings
from shopfront.core.database import get_db
from shopfront.core.security import get_optional_user, require_roles
from shopfront.models.product import (
    Product, ProductCategory, ProductDetails, ProductImage, ProductStatus,
    ProductVariant, Specification, UpperWear, BottomWear, LowerWear
)
from shopfront.models.user import User, UserRole, Seller
from shopfront.schemas.product import (
    BulkDeleteRequest,
    BulkResult,
    ProductCreate,
    ProductDetailResponse,
    ProductList,
    ProductResponse,
    ProductStatusUpdate,
    ProductUpdate,
)
from shopfront.services.catalog import rating_subquery, rating_summary, refresh_seller_rating

router = APIRouter()
logger = structlog.get_logger()

SORT_PATTERN = "^(created_at|price|rating|discount)$"
ORDER_PATTERN = "^(asc|desc)$"


def build_product(data: ProductCreate, seller_id: UUID) -> Product:
    """Create a product with its details, variants, images and size chart."""
    product = Product(
        title=data.title,
        description=data.description,
        price=data.price,
        discount=data.discount,
        category=data.category,
        stock=data.stock,
        bulk_upload=data.bulk_upload,
        status=ProductStatus.PENDING,
        seller_id=seller_id,
    )

    if data.details:
        product.details = ProductDetails(**data.details.model_dump())

    product.variants = [ProductVariant(**variant.model_dump()) for variant in data.variants]
    product.images = [
        ProductImage(url=url, position=idx) for idx, url in enumerate(data.image_urls)
    ]

    if data.specification:
        spec = Specification()
        if data.specification.upper_wear:
            spec.upper_wear = UpperWear(**data.specification.upper_wear.model_dump())
        if data.specification.bottom_wear:
            spec.bottom_wear = BottomWear(**data.specification.bottom_wear.model_dump())
        if data.specification.lower_wear:
            spec.lower_wear = LowerWear(**data.specification.lower_wear.model_dump())
        product.specification = spec

    return product


def detail_query():
    return select(Product).options(
        selectinload(Product.images),
        selectinload(Product.details),
        selectinload(Product.variants),
        selectinload(Product.specification).options(
            selectinload(Specification.upper_wear),
            selectinload(Specification.bottom_wear),
            selectinload(Specification.lower_wear),
        ),
    )


def with_rating(product: Product, ratings: Dict[UUID, Tuple[Optional[float], int]], schema=ProductResponse):
    average, count = ratings.get(product.id, (None, 0))
    return schema.model_validate(product).model_copy(
        update={"average_rating": average, "review_count": count}
    )


def apply_sort(query, sort_by: str, order: str):
    """Order a product query by a column or by average rating."""
    if sort_by == "rating":
        ratings = rating_subquery()
        query = query.outerjoin(ratings, ratings.c.product_id == Product.id)
        column = func.coalesce(ratings.c.average_rating, 0)
    else:
        column = getattr(Product, sort_by)

    column = column.asc() if order == "asc" else column.desc()
    return query.order_by(column, Product.id)


async def paginate(db: AsyncSession, query, page: int, page_size: int, sort_by: str, order: str) -> ProductList:
    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar()

    # Apply sorting and pagination
    query = apply_sort(query, sort_by, order)
    query = query.offset((page - 1) * page_size).limit(page_size)

    result = await db.execute(query)
    products = result.scalars().all()
    ratings = await rating_summary(db, [p.id for p in products])

    return ProductList(
        items=[with_rating(p, ratings) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )


async def get_product_for_owner(db: AsyncSession, product_id: UUID, user: User) -> Product:
    """Fetch a product the user may modify: its seller or an admin."""
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    if user.role != UserRole.ADMIN and (not user.seller or product.seller_id != user.seller.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this product",
        )

    return product


async def load_detail(db: AsyncSession, product_id: UUID) -> ProductDetailResponse:
    result = await db.execute(
        detail_query().where(Product.id == product_id).execution_options(populate_existing=True)
    )
    product = result.scalar_one()
    ratings = await rating_summary(db, [product.id])
    return with_rating(product, ratings, ProductDetailResponse)


@router.post("/", response_model=ProductDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    user: User = Depends(require_roles(UserRole.SELLER)),
    db: AsyncSession = Depends(get_db),
):
    """Create a product. New products wait for admin verification."""
    product = build_product(product_data, user.seller.id)
    db.add(product)
    await db.commit()

    logger.info("product_created", product_id=str(product.id), seller_id=str(user.seller.id))
    return await load_detail(db, product.id)


@router.post("/bulk", response_model=List[ProductResponse], status_code=status.HTTP_201_CREATED)
async def bulk_create_products(
    products_data: List[ProductCreate],
    user: User = Depends(require_roles(UserRole.SELLER)),
    db: AsyncSession = Depends(get_db),
):
    """Create several products at once. Either all are stored or none."""
    if not products_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one product is required",
        )

    products = [build_product(data, user.seller.id) for data in products_data]
    db.add_all(products)
    await db.commit()

    ids = [p.id for p in products]
    result = await db.execute(
        select(Product)
        .options(selectinload(Product.images))
        .where(Product.id.in_(ids))
        .order_by(Product.created_at, Product.id)
    )
    logger.info("products_bulk_created", count=len(ids), seller_id=str(user.seller.id))
    return result.scalars().all()


@router.delete("/bulk", response_model=BulkResult)
async def bulk_delete_products(
    body: BulkDeleteRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete several products by id."""
    result = await db.execute(
        select(Product.seller_id).where(Product.id.in_(body.product_ids)).distinct()
    )
    seller_ids = result.scalars().all()

    result = await db.execute(
        delete(Product)
        .where(Product.id.in_(body.product_ids))
        .execution_options(synchronize_session=False)
    )
    for seller_id in seller_ids:
        await refresh_seller_rating(db, seller_id)
    await db.commit()

    logger.info("products_bulk_deleted", count=result.rowcount)
    return BulkResult(count=result.rowcount, message=f"{result.rowcount} product(s) deleted")


@router.get("/", response_model=ProductList)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[ProductCategory] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    search: Optional[str] = Query(None, max_length=200),
    discounted: bool = False,
    sort_by: str = Query("created_at", pattern=SORT_PATTERN),
    order: str = Query("desc", pattern=ORDER_PATTERN),
    db: AsyncSession = Depends(get_db),
):
    """List approved products with filters, sorting and pagination."""
    if min_price is not None and max_price is not None and min_price > max_price:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="min_price cannot be greater than max_price",
        )

    query = select(Product).options(selectinload(Product.images))
    query = query.where(Product.status == ProductStatus.APPROVED)

    # Apply filters
    if category:
        query = query.where(Product.category == category)
    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)
    if search:
        query = query.where(Product.title.ilike(f"%{search}%"))
    if discounted:
        query = query.where(Product.discount > 0)

    return await paginate(db, query, page, page_size, sort_by, order)


@router.get("/manage", response_model=ProductList)
async def manage_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[ProductCategory] = None,
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    user: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Products a seller owns, or every product for an admin."""
    query = select(Product).options(selectinload(Product.images))

    if user.role == UserRole.SELLER:
        query = query.where(Product.seller_id == user.seller.id)
    if category:
        query = query.where(Product.category == category)
    if product_status:
        query = query.where(Product.status == product_status)

    return await paginate(db, query, page, page_size, "created_at", "desc")


@router.get("/pending", response_model=ProductList)
async def pending_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[ProductCategory] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|price|rating)$"),
    order: str = Query("desc", pattern=ORDER_PATTERN),
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Products waiting for verification."""
    query = select(Product).options(selectinload(Product.images))
    query = query.where(Product.status == ProductStatus.PENDING)
    if category:
        query = query.where(Product.category == category)

    return await paginate(db, query, page, page_size, sort_by, order)


@router.put("/verify-all", response_model=BulkResult)
async def verify_all_products(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Approve every pending product."""
    result = await db.execute(
        update(Product)
        .where(Product.status == ProductStatus.PENDING)
        .values(status=ProductStatus.APPROVED)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No pending products",
        )

    await db.commit()
    logger.info("products_verified", count=result.rowcount)
    return BulkResult(count=result.rowcount, message=f"{result.rowcount} product(s) approved")


@router.put("/verify/seller/{email}", response_model=BulkResult)
async def verify_seller_products(
    email: str,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Approve the pending products of one seller."""
    result = await db.execute(
        select(Seller).join(Seller.user).where(User.email == email)
    )
    seller = result.scalar_one_or_none()

    if not seller:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Seller not found",
        )

    result = await db.execute(
        update(Product)
        .where(Product.seller_id == seller.id, Product.status == ProductStatus.PENDING)
        .values(status=ProductStatus.APPROVED)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending products for this seller",
        )

    await db.commit()
    logger.info("products_verified", count=result.rowcount, seller_id=str(seller.id))
    return BulkResult(count=result.rowcount, message=f"{result.rowcount} product(s) approved")


@router.get("/seller/{seller_id}", response_model=List[ProductResponse])
async def products_by_seller(
    seller_id: UUID,
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    user: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Products of one seller. Sellers may only list their own."""
    seller = await db.get(Seller, seller_id)
    if not seller:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Seller not found",
        )

    if user.role == UserRole.SELLER and user.seller.id != seller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view these products",
        )

    query = select(Product).options(selectinload(Product.images)).where(Product.seller_id == seller_id)
    if product_status:
        query = query.where(Product.status == product_status)

    result = await db.execute(query.order_by(Product.created_at.desc(), Product.id))
    products = result.scalars().all()
    ratings = await rating_summary(db, [p.id for p in products])
    return [with_rating(p, ratings) for p in products]


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(
    product_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Get product by ID. Unapproved products are visible to their seller and admins."""
    result = await db.execute(detail_query().where(Product.id == product_id))
    product = result.scalar_one_or_none()

    visible = product is not None and (
        product.status == ProductStatus.APPROVED
        or (user is not None and user.role == UserRole.ADMIN)
        or (user is not None and user.seller is not None and user.seller.id == product.seller_id)
    )
    if not visible:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    ratings = await rating_summary(db, [product.id])
    return with_rating(product, ratings, ProductDetailResponse)


@router.patch("/{product_id}", response_model=ProductDetailResponse)
async def update_product(
    product_id: UUID,
    product_data: ProductUpdate,
    user: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Update a product."""
    product = await get_product_for_owner(db, product_id, user)

    # Update fields
    for field, value in product_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, field, value)

    await db.commit()
    logger.info("product_updated", product_id=str(product_id))
    return await load_detail(db, product_id)


@router.put("/{product_id}/status", response_model=ProductDetailResponse)
async def set_product_status(
    product_id: UUID,
    body: ProductStatusUpdate,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Change a product's verification status."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    product.status = body.status
    await db.commit()

    logger.info("product_status_changed", product_id=str(product_id), status=body.status.value)
    return await load_detail(db, product_id)


@router.put("/{product_id}/verify", response_model=ProductDetailResponse)
async def verify_product(
    product_id: UUID,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending product."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    if product.status != ProductStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is not pending verification",
        )

    product.status = ProductStatus.APPROVED
    await db.commit()

    logger.info("product_verified", product_id=str(product_id))
    return await load_detail(db, product_id)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    user: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a product together with its catalog data and reviews."""
    product = await get_product_for_owner(db, product_id, user)
    seller_id = product.seller_id

    await db.delete(product)
    await refresh_seller_rating(db, seller_id)
    await db.commit()

    logger.info("product_deleted", product_id=str(product_id))
