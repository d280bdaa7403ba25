"""
Database initialization script.
Creates tables, the admin account and a demo buyer.
"""
import asyncio
import sys

from sqlalchemy import select
from shopfront.core.config import settings
from shopfront.core.database import engine, AsyncSessionLocal, Base
from shopfront.core.security import get_password_hash
from shopfront.models import Buyer, Cart, User, UserRole


async def create_tables(reset: bool = False):
    """Create all database tables, dropping them first when asked."""
    print("Creating database tables...")
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Tables created successfully")


async def create_admin():
    """Create the admin account from ADMIN_* settings."""
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        print("! ADMIN_EMAIL / ADMIN_PASSWORD not set, skipping admin account")
        return

    print("Creating admin account...")

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User).where(User.email == settings.ADMIN_EMAIL)
        )
        existing = result.scalar_one_or_none()

        if not existing:
            admin = User(
                name=settings.ADMIN_NAME or "Administrator",
                email=settings.ADMIN_EMAIL,
                hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
                role=UserRole.ADMIN,
                is_verified=True,
            )
            session.add(admin)
            await session.commit()
            print(f"✓ Admin created (email: {settings.ADMIN_EMAIL})")
        elif existing.role != UserRole.ADMIN:
            existing.role = UserRole.ADMIN
            await session.commit()
            print(f"✓ Existing account {settings.ADMIN_EMAIL} promoted to admin")
        else:
            print("✓ Admin already exists")


async def create_demo_buyer():
    """Create a demo buyer for testing."""
    print("Creating demo buyer...")

    async with AsyncSessionLocal() as session:
        # Check if demo user exists
        result = await session.execute(
            select(User).where(User.email == "demo@shopfront.local")
        )
        existing = result.scalar_one_or_none()

        if not existing:
            demo_user = User(
                name="Demo Buyer",
                email="demo@shopfront.local",
                hashed_password=get_password_hash("Demo123!"),
                role=UserRole.BUYER,
                is_verified=True,
            )
            demo_user.buyer = Buyer(cart=Cart(total_price=0.0))
            session.add(demo_user)
            await session.commit()
            print("✓ Demo buyer created (email: demo@shopfront.local, password: Demo123!)")
        else:
            print("✓ Demo buyer already exists")


async def main():
    """Main initialization function."""
    print("="*60)
    print(f"{settings.APP_NAME} Database Initialization")
    print("="*60)

    try:
        await create_tables(reset="--reset" in sys.argv)
        await create_admin()
        await create_demo_buyer()

        print("="*60)
        print("✓ Database initialization completed successfully!")
        print("="*60)

    except Exception as e:
        print(f"✗ Error during initialization: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
