"""Review endpoints."""
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.database import get_db
from shopfront.core.security import require_roles
from shopfront.models.product import Product, Review
from shopfront.models.user import Buyer, User, UserRole
from shopfront.schemas.product import ProductReviews, ReviewCreate, ReviewResponse, ReviewUpdate
from shopfront.services.catalog import rating_summary, refresh_seller_rating

router = APIRouter()
logger = structlog.get_logger()


def review_query():
    return select(Review).options(selectinload(Review.buyer).selectinload(Buyer.user))


def to_response(review: Review) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    response.reviewer_name = review.buyer.user.name if review.buyer else None
    return response


async def load_review(db: AsyncSession, review_id: UUID) -> Review:
    result = await db.execute(
        review_query().where(Review.id == review_id).execution_options(populate_existing=True)
    )
    review = result.scalar_one_or_none()

    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found",
        )

    return review


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    review_data: ReviewCreate,
    user: User = Depends(require_roles(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
):
    """Review a product. One review per buyer and product."""
    product = await db.get(Product, review_data.product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    result = await db.execute(
        select(Review).where(
            Review.buyer_id == user.buyer.id, Review.product_id == product.id
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already reviewed this product",
        )

    review = Review(
        product_id=product.id,
        buyer_id=user.buyer.id,
        seller_id=product.seller_id,
        rating=review_data.rating,
        comment=review_data.comment,
    )
    db.add(review)
    await refresh_seller_rating(db, product.seller_id)
    await db.commit()

    logger.info("review_created", review_id=str(review.id), product_id=str(product.id))
    return to_response(await load_review(db, review.id))


@router.get("/product/{product_id}", response_model=ProductReviews)
async def product_reviews(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Reviews of a product with the average rating."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    result = await db.execute(
        review_query().where(Review.product_id == product_id).order_by(Review.created_at.desc())
    )
    reviews = result.scalars().all()
    average, count = (await rating_summary(db, [product_id])).get(product_id, (None, 0))

    return ProductReviews(
        items=[to_response(review) for review in reviews],
        average_rating=average,
        count=count,
    )


@router.get("/me", response_model=List[ReviewResponse])
async def my_reviews(
    user: User = Depends(require_roles(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
):
    """Reviews written by the signed-in buyer."""
    result = await db.execute(
        review_query().where(Review.buyer_id == user.buyer.id).order_by(Review.created_at.desc())
    )
    return [to_response(review) for review in result.scalars().all()]


@router.get("/", response_model=List[ReviewResponse])
async def all_reviews(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Every review."""
    result = await db.execute(review_query().order_by(Review.created_at.desc()))
    return [to_response(review) for review in result.scalars().all()]


@router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: UUID,
    review_data: ReviewUpdate,
    user: User = Depends(require_roles(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
):
    """Edit one's own review."""
    # Loading the review refreshes the reviewer's User, so read the buyer id first
    buyer_id = user.buyer.id
    review = await load_review(db, review_id)

    if review.buyer_id != buyer_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to edit this review",
        )

    for field, value in review_data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(review, field, value)

    await refresh_seller_rating(db, review.seller_id)
    await db.commit()

    return to_response(await load_review(db, review_id))


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    user: User = Depends(require_roles(UserRole.BUYER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a review. Buyers may delete their own, admins any."""
    buyer_id = user.buyer.id if user.buyer else None
    review = await load_review(db, review_id)

    if user.role != UserRole.ADMIN and review.buyer_id != buyer_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this review",
        )

    seller_id = review.seller_id
    await db.delete(review)
    await refresh_seller_rating(db, seller_id)
    await db.commit()

    logger.info("review_deleted", review_id=str(review_id))
