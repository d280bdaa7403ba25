"""
Password hashing, JWT tokens and authentication dependencies.
"""
import hashlib
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.config import settings
from shopfront.core.database import get_db
from shopfront.models.user import User, UserRole

logger = structlog.get_logger()

bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def hash_token(token: str) -> str:
    """SHA-256 digest used to store OTPs and opaque tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_otp() -> str:
    """Random 6-digit one-time passcode."""
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def _encode(claims: dict, expires_delta: timedelta) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.utcnow() + expires_delta
    payload["iat"] = datetime.utcnow()
    payload["jti"] = uuid.uuid4().hex
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user: User) -> str:
    """Create a short-lived access token for a user."""
    return _encode(
        {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "type": "access",
        },
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user: User) -> str:
    """Create a refresh token for a user."""
    return _encode(
        {"sub": str(user.id), "type": "refresh"},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_email_verification_token(user: User) -> str:
    """Create a signed email verification token."""
    return _encode(
        {"sub": str(user.id), "email": user.email, "type": "email_verification"},
        timedelta(minutes=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES),
    )


def decode_token(
    token: str,
    expected_type: str,
    error_status: int = status.HTTP_401_UNAUTHORIZED,
) -> dict:
    """
    Decode and validate a JWT.

    Args:
        token: Encoded token
        expected_type: Required value of the ``type`` claim
        error_status: Status code raised when the token is not acceptable

    Returns:
        Token claims
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=error_status, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=error_status, detail="Invalid token")

    if payload.get("type") != expected_type or "sub" not in payload:
        raise HTTPException(status_code=error_status, detail="Invalid token")

    return payload


def parse_subject(payload: dict, error_status: int = status.HTTP_401_UNAUTHORIZED) -> uuid.UUID:
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=error_status, detail="Invalid token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the signed-in user from the bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, "access")
    user_id = parse_subject(payload)

    result = await db.execute(
        select(User)
        .options(selectinload(User.buyer), selectinload(User.seller))
        .where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
        )

    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Signed-in user when a valid token is sent, otherwise None."""
    if credentials is None:
        return None
    return await get_current_user(credentials, db)


def require_roles(*roles: UserRole):
    """
    Build a dependency that only lets the given roles through.

    Usage:
        user: User = Depends(require_roles(UserRole.ADMIN))
    """
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(
                "access_denied",
                user_id=str(user.id),
                role=user.role.value,
                required=[role.value for role in roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return checker
