"""Wishlist endpoints."""
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.database import get_db
from shopfront.core.security import require_roles
from shopfront.models.order import Wishlist
from shopfront.models.product import Product, ProductStatus
from shopfront.models.user import User, UserRole
from shopfront.schemas.order import CartResponse, Count, WishlistCreate, WishlistResponse
from shopfront.schemas.user import Message
from shopfront.services.cart import add_item, get_or_create_cart

router = APIRouter()
logger = structlog.get_logger()

buyer_only = require_roles(UserRole.BUYER)


async def get_entry(db: AsyncSession, buyer_id: UUID, product_id: UUID) -> Wishlist:
    result = await db.execute(
        select(Wishlist)
        .options(selectinload(Wishlist.product))
        .where(Wishlist.buyer_id == buyer_id, Wishlist.product_id == product_id)
    )
    entry = result.scalar_one_or_none()

    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not in wishlist",
        )

    return entry


@router.post("/", response_model=WishlistResponse, status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(
    body: WishlistCreate,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Save a product for later."""
    product = await db.get(Product, body.product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    result = await db.execute(
        select(Wishlist).where(
            Wishlist.buyer_id == user.buyer.id, Wishlist.product_id == body.product_id
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product already in wishlist",
        )

    entry = Wishlist(buyer_id=user.buyer.id, product_id=product.id, product=product)
    db.add(entry)
    await db.commit()

    logger.info("wishlist_added", buyer_id=str(user.buyer.id), product_id=str(product.id))
    return entry


@router.delete("/{product_id}", response_model=Message)
async def remove_from_wishlist(
    product_id: UUID,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Remove a product from the wishlist."""
    entry = await get_entry(db, user.buyer.id, product_id)
    await db.delete(entry)
    await db.commit()
    return Message(message="Removed from wishlist")


@router.get("/", response_model=List[WishlistResponse])
async def get_wishlist(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """List the buyer's wishlist, newest first."""
    result = await db.execute(
        select(Wishlist)
        .options(selectinload(Wishlist.product))
        .where(Wishlist.buyer_id == user.buyer.id)
        .order_by(Wishlist.created_at.desc())
    )
    return result.scalars().all()


@router.delete("/", response_model=Message)
async def clear_wishlist(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Remove every wishlist entry."""
    await db.execute(delete(Wishlist).where(Wishlist.buyer_id == user.buyer.id))
    await db.commit()
    return Message(message="Wishlist cleared")


@router.get("/count", response_model=Count)
async def wishlist_count(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Number of wishlist entries."""
    result = await db.execute(
        select(func.count(Wishlist.id)).where(Wishlist.buyer_id == user.buyer.id)
    )
    return Count(count=result.scalar())


@router.post("/{product_id}/move-to-cart", response_model=CartResponse)
async def move_to_cart(
    product_id: UUID,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Move a wishlist entry into the cart with quantity one."""
    entry = await get_entry(db, user.buyer.id, product_id)
    product = entry.product

    if product.status != ProductStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is not available for purchase",
        )

    cart = await get_or_create_cart(db, user.buyer.id)
    await db.delete(entry)
    cart = await add_item(db, cart, product, 1)
    await db.commit()

    logger.info("wishlist_moved_to_cart", buyer_id=str(user.buyer.id), product_id=str(product_id))
    return cart
