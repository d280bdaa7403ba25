"""Order endpoints."""
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.database import get_db
from shopfront.core.security import get_current_user, require_roles
from shopfront.models.order import Order, OrderStatus
from shopfront.models.user import Address, Buyer, User, UserRole
from shopfront.schemas.order import OrderResponse, OrderStatusUpdate
from shopfront.schemas.user import AddressResponse
from shopfront.services import notifications
from shopfront.services.orders import resolve_address, restock

router = APIRouter()
logger = structlog.get_logger()

FINAL_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def is_buyer_owner(user: User, order: Order) -> bool:
    return user.buyer is not None and order.buyer_id == user.buyer.id


def is_seller_owner(user: User, order: Order) -> bool:
    return user.seller is not None and order.seller_id == user.seller.id


async def get_order_for_user(db: AsyncSession, order_id: UUID, user: User) -> Order:
    """Fetch an order visible to its buyer, its seller or an admin."""
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )

    if user.role != UserRole.ADMIN and not is_buyer_owner(user, order) and not is_seller_owner(user, order):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this order",
        )

    return order


@router.get("/", response_model=List[OrderResponse])
async def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    user: User = Depends(require_roles(UserRole.BUYER, UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """List orders placed by a buyer, received by a seller, or all for an admin."""
    query = select(Order).options(selectinload(Order.items))

    if user.role == UserRole.BUYER:
        query = query.where(Order.buyer_id == user.buyer.id)
    elif user.role == UserRole.SELLER:
        query = query.where(Order.seller_id == user.seller.id)

    if order_status:
        query = query.where(Order.status == order_status)

    result = await db.execute(query.order_by(Order.created_at.desc()))
    return result.scalars().all()


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get order by ID."""
    return await get_order_for_user(db, order_id, user)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    body: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change order status.

    Sellers and admins may set any status. Buyers may only cancel
    a pending order. Delivered and cancelled orders are final.
    """
    order = await get_order_for_user(db, order_id, user)

    if order.status in FINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Order is already {order.status.value}",
        )

    if user.role != UserRole.ADMIN and not is_seller_owner(user, order):
        if body.status != OrderStatus.CANCELLED or order.status != OrderStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Buyers can only cancel pending orders",
            )

    previous = order.status
    order.status = body.status
    if body.status == OrderStatus.CANCELLED:
        await restock(db, order)

    await db.commit()

    result = await db.execute(
        select(Buyer).options(selectinload(Buyer.user)).where(Buyer.id == order.buyer_id)
    )
    buyer = result.scalar_one()
    background_tasks.add_task(
        notifications.send_order_status,
        buyer.user.email, buyer.user.name, str(order.id), body.status.value,
    )

    logger.info(
        "order_status_changed",
        order_id=str(order.id),
        previous=previous.value,
        status=body.status.value,
        changed_by=str(user.id),
    )
    return await get_order_for_user(db, order_id, user)


@router.get("/{order_id}/address", response_model=AddressResponse)
async def get_order_address(
    order_id: UUID,
    user: User = Depends(require_roles(UserRole.SELLER)),
    db: AsyncSession = Depends(get_db),
):
    """Shipping address of an order, for the seller fulfilling it."""
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )

    if not is_seller_owner(user, order):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this order",
        )

    address = None
    if order.address_id:
        address = await db.get(Address, order.address_id)

    if not address:
        address = await resolve_address(db, order.buyer_id)

    if not address:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No address found for this order",
        )

    return address
