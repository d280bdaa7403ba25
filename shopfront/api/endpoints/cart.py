"""Cart endpoints."""
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.database import get_db
from shopfront.core.security import require_roles
from shopfront.models.product import Product, ProductStatus
from shopfront.models.user import User, UserRole, Seller
from shopfront.schemas.order import (
    CartItemCreate,
    CartItemUpdate,
    CartLineCheck,
    CartResponse,
    CartValidation,
    CheckoutRequest,
    CheckoutResponse,
    Count,
)
from shopfront.services import notifications
from shopfront.services.cart import add_item, find_item, get_or_create_cart, load_cart, recalculate_total
from shopfront.services.catalog import effective_price
from shopfront.services.orders import checkout

router = APIRouter()
logger = structlog.get_logger()

buyer_only = require_roles(UserRole.BUYER)


@router.get("/", response_model=CartResponse)
async def get_cart(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Get the buyer's cart, creating it on first access."""
    cart = await get_or_create_cart(db, user.buyer.id)
    await db.commit()
    return cart


@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item_data: CartItemCreate,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Add a product to the cart."""
    product = await db.get(Product, item_data.product_id)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    if product.status != ProductStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is not available for purchase",
        )

    cart = await get_or_create_cart(db, user.buyer.id)
    cart = await add_item(db, cart, product, item_data.quantity)
    await db.commit()
    return cart


@router.put("/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: UUID,
    item_data: CartItemUpdate,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Set the quantity of a cart line."""
    cart = await get_or_create_cart(db, user.buyer.id)
    item = find_item(cart, product_id)

    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not in cart",
        )

    item.quantity = item_data.quantity
    recalculate_total(cart)
    await db.commit()

    return await load_cart(db, user.buyer.id)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    product_id: UUID,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Remove a product from the cart."""
    cart = await get_or_create_cart(db, user.buyer.id)
    item = find_item(cart, product_id)

    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not in cart",
        )

    cart.items.remove(item)
    recalculate_total(cart)
    await db.commit()

    logger.info("cart_item_removed", cart_id=str(cart.id), product_id=str(product_id))
    return await load_cart(db, user.buyer.id)


@router.delete("/", response_model=CartResponse)
async def clear_cart(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Remove every line from the cart."""
    cart = await get_or_create_cart(db, user.buyer.id)
    cart.items.clear()
    cart.total_price = 0.0
    await db.commit()

    return await load_cart(db, user.buyer.id)


@router.get("/count", response_model=Count)
async def cart_count(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Total quantity of products in the cart."""
    cart = await load_cart(db, user.buyer.id)
    count = sum(item.quantity for item in cart.items) if cart else 0
    return Count(count=count)


@router.get("/validate", response_model=CartValidation)
async def validate_cart(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Check stock, availability and prices of every cart line."""
    cart = await load_cart(db, user.buyer.id)
    checks: List[CartLineCheck] = []

    for item in cart.items if cart else []:
        product = item.product
        current_price = effective_price(product.price, product.discount)
        checks.append(CartLineCheck(
            product_id=product.id,
            title=product.title,
            quantity=item.quantity,
            stock=product.stock,
            price=item.price,
            current_price=current_price,
            is_available=product.status == ProductStatus.APPROVED and product.stock >= item.quantity,
            is_price_correct=item.price == current_price,
        ))

    valid = all(c.is_available and c.is_price_correct for c in checks)
    return CartValidation(valid=valid, items=checks)


@router.post("/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout_cart(
    background_tasks: BackgroundTasks,
    body: Optional[CheckoutRequest] = None,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Place one order per seller from the cart and notify everyone involved."""
    address_id = body.address_id if body else None
    orders = await checkout(db, user.buyer, address_id)
    await db.commit()

    seller_ids = [order.seller_id for order in orders]
    result = await db.execute(
        select(Seller).options(selectinload(Seller.user)).where(Seller.id.in_(seller_ids))
    )
    sellers = {seller.id: seller for seller in result.scalars().all()}

    total = round(sum(order.total_amount for order in orders), 2)
    all_lines = []
    for order in orders:
        lines = [(item.title, item.quantity, item.unit_price) for item in order.items]
        all_lines.extend(lines)
        seller = sellers.get(order.seller_id)
        if seller:
            background_tasks.add_task(
                notifications.send_order_received,
                seller.user.email, seller.store_name, str(order.id), lines, order.total_amount,
            )

    background_tasks.add_task(
        notifications.send_order_placed,
        user.email, user.name, [str(order.id) for order in orders], all_lines, total,
    )

    return CheckoutResponse(orders=orders, total_amount=total)
