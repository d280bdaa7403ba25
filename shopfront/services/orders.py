"""
Checkout and order stock handling.
"""
from collections import defaultdict
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.models.order import CartItem, Order, OrderItem
from shopfront.models.product import Product, ProductStatus
from shopfront.models.user import Address, Buyer
from shopfront.services.cart import load_cart
from shopfront.services.catalog import effective_price

logger = structlog.get_logger()


async def resolve_address(
    db: AsyncSession, buyer_id: UUID, address_id: Optional[UUID] = None
) -> Optional[Address]:
    """
    Pick the shipping address for a buyer.

    The requested address when given, else the default one,
    else the most recently created, else None.
    """
    if address_id:
        result = await db.execute(
            select(Address).where(Address.id == address_id, Address.buyer_id == buyer_id)
        )
        address = result.scalar_one_or_none()
        if not address:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Address not found",
            )
        return address

    result = await db.execute(
        select(Address)
        .where(Address.buyer_id == buyer_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def unavailable_lines(items: List[CartItem]) -> List[str]:
    """Titles of cart lines that cannot be bought as they stand."""
    problems = []
    for item in items:
        product = item.product
        if product.status != ProductStatus.APPROVED:
            problems.append(f"{product.title} is not available")
        elif product.stock < item.quantity:
            problems.append(f"{product.title} has only {product.stock} in stock")
    return problems


async def load_orders(db: AsyncSession, order_ids: List[UUID]) -> List[Order]:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id.in_(order_ids))
        .order_by(Order.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def checkout(
    db: AsyncSession, buyer: Buyer, address_id: Optional[UUID] = None
) -> List[Order]:
    """
    Turn the buyer's cart into one order per seller.

    Stock is decremented with a conditional update; if any line
    cannot be fulfilled the request fails and the session is rolled back,
    leaving cart and stock untouched.
    """
    cart = await load_cart(db, buyer.id)
    if not cart or not cart.items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cart is empty",
        )

    address = await resolve_address(db, buyer.id, address_id)

    problems = unavailable_lines(cart.items)
    if problems:
        logger.info("checkout_rejected", buyer_id=str(buyer.id), problems=problems)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=problems,
        )

    by_seller: Dict[UUID, List[CartItem]] = defaultdict(list)
    for item in cart.items:
        by_seller[item.product.seller_id].append(item)

    order_ids = []
    for seller_id, items in by_seller.items():
        order = Order(
            buyer_id=buyer.id,
            seller_id=seller_id,
            address_id=address.id if address else None,
            total_amount=0.0,
        )
        total = 0.0
        for item in items:
            product = item.product
            result = await db.execute(
                update(Product)
                .where(Product.id == product.id, Product.stock >= item.quantity)
                .values(stock=Product.stock - item.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=[f"{product.title} has insufficient stock"],
                )

            unit_price = effective_price(product.price, product.discount)
            total += unit_price * item.quantity
            order.items.append(OrderItem(
                product_id=product.id,
                title=product.title,
                quantity=item.quantity,
                unit_price=unit_price,
            ))

        order.total_amount = round(total, 2)
        db.add(order)
        await db.flush()
        order_ids.append(order.id)

    cart.items.clear()
    cart.total_price = 0.0
    await db.flush()

    orders = await load_orders(db, order_ids)
    logger.info(
        "checkout_completed",
        buyer_id=str(buyer.id),
        orders=[str(order.id) for order in orders],
        total=round(sum(order.total_amount for order in orders), 2),
    )
    return orders


async def restock(db: AsyncSession, order: Order) -> None:
    """Return the quantities of a cancelled order to products that still exist."""
    for item in order.items:
        if item.product_id is None:
            continue
        await db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity)
            .execution_options(synchronize_session=False)
        )
    logger.info("order_restocked", order_id=str(order.id))
