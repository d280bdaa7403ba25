"""
Pricing and rating helpers shared by the catalog, cart and review endpoints.
"""
from typing import Dict, Iterable, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from shopfront.models.product import Review
from shopfront.models.user import Seller

logger = structlog.get_logger()

MIN_PRICE = 0.01


def effective_price(price: float, discount: Optional[float]) -> float:
    """
    Price after the percentage discount, rounded to cents.

    Never drops below one cent.
    """
    discounted = round(price * (1 - (discount or 0) / 100), 2)
    return max(discounted, MIN_PRICE)


def rating_subquery():
    """Average rating and review count per product."""
    return (
        select(
            Review.product_id.label("product_id"),
            func.avg(Review.rating).label("average_rating"),
            func.count(Review.id).label("review_count"),
        )
        .group_by(Review.product_id)
        .subquery()
    )


async def rating_summary(
    db: AsyncSession, product_ids: Iterable[UUID]
) -> Dict[UUID, Tuple[Optional[float], int]]:
    """Map product id to (average rating, review count)."""
    ids = list(product_ids)
    if not ids:
        return {}

    result = await db.execute(
        select(Review.product_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.product_id.in_(ids))
        .group_by(Review.product_id)
    )
    return {
        product_id: (round(float(avg), 2), count)
        for product_id, avg, count in result.all()
    }


async def refresh_seller_rating(db: AsyncSession, seller_id: UUID) -> Optional[float]:
    """Recompute a seller's rating from the reviews of their products."""
    await db.flush()
    result = await db.execute(
        select(func.avg(Review.rating)).where(Review.seller_id == seller_id)
    )
    average = result.scalar()
    rating = round(float(average), 2) if average is not None else None

    seller = await db.get(Seller, seller_id)
    if seller:
        seller.rating = rating
        logger.info("seller_rating_updated", seller_id=str(seller_id), rating=rating)

    return rating
