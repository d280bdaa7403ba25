"""
Cart loading and mutation helpers.
"""
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.models.order import Cart, CartItem
from shopfront.models.product import Product
from shopfront.services.catalog import effective_price

logger = structlog.get_logger()


async def load_cart(db: AsyncSession, buyer_id: UUID) -> Optional[Cart]:
    """Load a buyer's cart with its lines and their products."""
    result = await db.execute(
        select(Cart)
        .options(selectinload(Cart.items).selectinload(CartItem.product))
        .where(Cart.buyer_id == buyer_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_cart(db: AsyncSession, buyer_id: UUID) -> Cart:
    """Return the buyer's cart, creating an empty one on first use."""
    cart = await load_cart(db, buyer_id)
    if cart:
        return cart

    db.add(Cart(buyer_id=buyer_id, total_price=0.0))
    await db.flush()
    logger.info("cart_created", buyer_id=str(buyer_id))
    return await load_cart(db, buyer_id)


def recalculate_total(cart: Cart) -> float:
    """Set the cart total from its line snapshots."""
    cart.total_price = round(sum(item.price * item.quantity for item in cart.items), 2)
    return cart.total_price


def find_item(cart: Cart, product_id: UUID) -> Optional[CartItem]:
    for item in cart.items:
        if item.product_id == product_id:
            return item
    return None


async def add_item(db: AsyncSession, cart: Cart, product: Product, quantity: int) -> Cart:
    """
    Add a product to the cart at its current effective price.

    An existing line for the product has the quantity added to it.

    Returns:
        The reloaded cart
    """
    price = effective_price(product.price, product.discount)
    item = find_item(cart, product.id)

    if item:
        item.quantity += quantity
        item.price = price
    else:
        item = CartItem(product_id=product.id, quantity=quantity, price=price, product=product)
        cart.items.append(item)

    recalculate_total(cart)
    await db.flush()

    logger.info(
        "cart_item_added",
        cart_id=str(cart.id),
        product_id=str(product.id),
        quantity=item.quantity,
    )
    return await load_cart(db, cart.buyer_id)
