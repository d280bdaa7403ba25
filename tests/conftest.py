"""
Shared fixtures: a throwaway SQLite database, an HTTP client bound to the app,
captured outgoing email and ready-made buyer, seller and admin accounts.
"""
import itertools
import os
import tempfile
from dataclasses import dataclass

# Settings are read at import time, so the environment is prepared first.
_DB_DIR = tempfile.mkdtemp(prefix="shopfront-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient

from shopfront.api.endpoints import users as users_endpoints
from shopfront.core.database import AsyncSessionLocal, Base, engine
from shopfront.core.email import email_service
from shopfront.core.security import get_password_hash
from shopfront.main import app
from shopfront.models.user import User, UserRole

API = "/api/v1"
PASSWORD = "Secret123!"
OTP_CODE = "123456"

_sequence = itertools.count(1)


@dataclass
class Account:
    """A signed-in test account."""
    email: str
    headers: dict
    profile: dict

    @property
    def user_id(self) -> str:
        return self.profile["id"]

    @property
    def buyer_id(self) -> str:
        return self.profile["buyer"]["id"]

    @property
    def seller_id(self) -> str:
        return self.profile["seller"]["id"]


def unique_email(prefix: str) -> str:
    return f"{prefix}{next(_sequence)}@example.com"


def seller_fields() -> dict:
    n = next(_sequence)
    return {
        "store_name": f"Store {n}",
        "aadhar_card": f"{n:012d}",
        "pan_card": f"ABCDE{n:04d}F"[:10],
        "gst_number": f"22AAAAA{n:04d}A1Z"[:15],
    }


def product_payload(**overrides) -> dict:
    payload = {
        "title": "Cotton Shirt",
        "description": "A comfortable cotton shirt for everyday wear.",
        "price": 100.0,
        "discount": 0.0,
        "category": "MENS",
        "stock": 10,
        "image_urls": ["https://cdn.example.com/shirt-front.jpg"],
    }
    payload.update(overrides)
    return payload


async def register(client: AsyncClient, email: str, name: str = "Test User") -> dict:
    response = await client.post(
        f"{API}/users/register",
        json={"name": name, "email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def assign_role(client: AsyncClient, headers: dict, role: str, **extra) -> dict:
    response = await client.post(f"{API}/users/request-otp", headers=headers)
    assert response.status_code == 200, response.text

    response = await client.post(
        f"{API}/users/assign-role",
        headers=headers,
        json={"otp": OTP_CODE, "role": role, **extra},
    )
    assert response.status_code == 200, response.text
    return response.json()


async def make_buyer(client: AsyncClient, name: str = "Bob Buyer") -> Account:
    email = unique_email("buyer")
    headers = await register(client, email, name)
    profile = await assign_role(client, headers, "BUYER")
    return Account(email=email, headers=headers, profile=profile)


async def make_seller(client: AsyncClient, name: str = "Sam Seller") -> Account:
    email = unique_email("seller")
    headers = await register(client, email, name)
    profile = await assign_role(client, headers, "SELLER", **seller_fields())
    return Account(email=email, headers=headers, profile=profile)


@pytest.fixture(autouse=True)
async def database():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of talking to SMTP."""
    sent = []

    async def fake_send(to, subject, html):
        sent.append({"to": to, "subject": subject, "html": html})

    monkeypatch.setattr(email_service, "send", fake_send)
    return sent


@pytest.fixture(autouse=True)
def fixed_otp(monkeypatch):
    monkeypatch.setattr(users_endpoints, "generate_otp", lambda: OTP_CODE)


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def buyer(client) -> Account:
    return await make_buyer(client)


@pytest.fixture
async def seller(client) -> Account:
    return await make_seller(client)


@pytest.fixture
async def admin(client) -> Account:
    email = unique_email("admin")
    async with AsyncSessionLocal() as session:
        session.add(User(
            name="Ada Admin",
            email=email,
            hashed_password=get_password_hash(PASSWORD),
            role=UserRole.ADMIN,
            is_verified=True,
        ))
        await session.commit()

    response = await client.post(
        f"{API}/users/admin/signin", json={"email": email, "password": PASSWORD}
    )
    assert response.status_code == 200, response.text
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    response = await client.get(f"{API}/users/me", headers=headers)
    return Account(email=email, headers=headers, profile=response.json())


@pytest.fixture
def make_product(client, seller, admin):
    """Create a product as a seller, approved by the admin unless asked otherwise."""
    async def _make(approve: bool = True, owner: Account = None, **overrides) -> dict:
        response = await client.post(
            f"{API}/products/",
            json=product_payload(**overrides),
            headers=(owner or seller).headers,
        )
        assert response.status_code == 201, response.text
        product = response.json()

        if approve:
            response = await client.put(
                f"{API}/products/{product['id']}/verify", headers=admin.headers
            )
            assert response.status_code == 200, response.text
            product = response.json()

        return product

    return _make
