"""Address book endpoints."""
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopfront.core.database import get_db
from shopfront.core.security import require_roles
from shopfront.models.user import Address, User, UserRole
from shopfront.schemas.user import AddressCreate, AddressResponse, AddressUpdate

router = APIRouter()
logger = structlog.get_logger()

buyer_only = require_roles(UserRole.BUYER)


async def clear_default(db: AsyncSession, buyer_id: UUID) -> None:
    """Unset the current default so another address can take its place."""
    await db.execute(
        update(Address)
        .where(Address.buyer_id == buyer_id, Address.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


async def get_own_address(db: AsyncSession, buyer_id: UUID, address_id: UUID) -> Address:
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


@router.post("/", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    address_data: AddressCreate,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Add an address. The first address becomes the default."""
    buyer_id = user.buyer.id
    result = await db.execute(select(Address.id).where(Address.buyer_id == buyer_id).limit(1))
    is_first = result.first() is None

    make_default = address_data.is_default or is_first
    if make_default and not is_first:
        await clear_default(db, buyer_id)

    address = Address(**address_data.model_dump(exclude={"is_default"}), buyer_id=buyer_id, is_default=make_default)
    db.add(address)
    await db.commit()

    logger.info("address_created", buyer_id=str(buyer_id), is_default=make_default)
    return address


@router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: UUID,
    address_data: AddressUpdate,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Update an address. Setting it as default clears the previous default."""
    address = await get_own_address(db, user.buyer.id, address_id)
    data = address_data.model_dump(exclude_unset=True, exclude_none=True)

    if data.pop("is_default", None) and not address.is_default:
        await clear_default(db, user.buyer.id)
        await db.flush()
        address.is_default = True

    for field, value in data.items():
        setattr(address, field, value)

    await db.commit()
    return address


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(
    address_id: UUID,
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Delete an address. Removing the default promotes the newest remaining one."""
    address = await get_own_address(db, user.buyer.id, address_id)
    was_default = address.is_default

    await db.delete(address)
    await db.flush()

    if was_default:
        result = await db.execute(
            select(Address)
            .where(Address.buyer_id == user.buyer.id)
            .order_by(Address.created_at.desc())
            .limit(1)
        )
        successor = result.scalar_one_or_none()
        if successor:
            successor.is_default = True

    await db.commit()
    logger.info("address_deleted", address_id=str(address_id))


@router.get("/", response_model=List[AddressResponse])
async def list_addresses(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """List addresses, default first."""
    result = await db.execute(
        select(Address)
        .where(Address.buyer_id == user.buyer.id)
        .order_by(Address.is_default.desc(), Address.created_at.desc())
    )
    return result.scalars().all()


@router.get("/default", response_model=AddressResponse)
async def get_default_address(
    user: User = Depends(buyer_only),
    db: AsyncSession = Depends(get_db),
):
    """Get the default address."""
    result = await db.execute(
        select(Address).where(Address.buyer_id == user.buyer.id, Address.is_default.is_(True))
    )
    address = result.scalar_one_or_none()

    if not address:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No default address",
        )

    return address
