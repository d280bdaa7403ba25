"""User, authentication and role assignment endpoints."""
import secrets
from datetime import datetime, timedelta
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shopfront.core.config import settings
from shopfront.core.database import get_db
from shopfront.core.redis import RedisClient, get_redis
from shopfront.core.security import (
    create_access_token,
    create_email_verification_token,
    create_refresh_token,
    decode_token,
    generate_otp,
    generate_reset_token,
    get_current_user,
    get_password_hash,
    hash_token,
    parse_subject,
    require_roles,
    verify_password,
)
from shopfront.models.user import (
    Buyer, Otp, PasswordResetToken, RefreshToken, Seller, User, UserRole
)
from shopfront.schemas.user import (
    AccessToken,
    AssignRoleRequest,
    BuyerDetail,
    BuyerProfileUpdate,
    ForgotPasswordRequest,
    Message,
    RefreshRequest,
    ResetPasswordRequest,
    SellerDetail,
    SellerProfileUpdate,
    SellerResponse,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
    VerifySellerRequest,
)
from shopfront.services import notifications

router = APIRouter()
logger = structlog.get_logger()


async def load_user(db: AsyncSession, user_id: UUID) -> User:
    """Fetch a user with both role profiles, refreshing any cached copy."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.buyer), selectinload(User.seller))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def issue_tokens(db: AsyncSession, user: User) -> Token:
    """Create an access/refresh token pair and store the refresh token hash."""
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)

    db.add(RefreshToken(
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        expires_at=datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))

    return Token(access_token=access_token, refresh_token=refresh_token)


async def authenticate(
    request: Request, credentials: UserLogin, db: AsyncSession, redis: RedisClient
) -> User:
    """Throttle per client, then check email and password."""
    client_host = request.client.host if request.client else "unknown"
    hits = await redis.hit(f"rate:signin:{client_host}", 60)
    if hits > settings.RATE_LIMIT_PER_MINUTE:
        logger.warning("signin_throttled", client_host=client_host, hits=hits)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many sign-in attempts, try again later",
        )

    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.info("signin_failed", email=credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return user


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Register a new account. The role is assigned later through OTP verification."""
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    if user_data.phone_number:
        result = await db.execute(
            select(User).where(User.phone_number == user_data.phone_number)
        )
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Phone number already registered",
            )

    user = User(
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        phone_number=user_data.phone_number,
        role=UserRole.USER,
    )
    db.add(user)
    await db.flush()

    tokens = await issue_tokens(db, user)
    await db.commit()

    logger.info("user_registered", user_id=str(user.id))
    return tokens


@router.post("/signin", response_model=Token)
async def signin(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """Sign in with email and password."""
    user = await authenticate(request, credentials, db, redis)

    user.last_login = datetime.utcnow()
    tokens = await issue_tokens(db, user)
    await db.commit()

    logger.info("user_signed_in", user_id=str(user.id), role=user.role.value)
    return tokens


@router.post("/admin/signin", response_model=Token)
async def admin_signin(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """Sign in to an admin account."""
    user = await authenticate(request, credentials, db, redis)

    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    user.last_login = datetime.utcnow()
    tokens = await issue_tokens(db, user)
    await db.commit()

    logger.info("admin_signed_in", user_id=str(user.id))
    return tokens


@router.post("/refresh", response_model=AccessToken)
async def refresh_access_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a stored refresh token for a new access token."""
    payload = decode_token(body.refresh_token, "refresh")
    user_id = parse_subject(payload)

    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(body.refresh_token),
            RefreshToken.user_id == user_id,
            RefreshToken.expires_at > datetime.utcnow(),
        )
    )
    if not result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token revoked or expired",
        )

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
        )

    return AccessToken(access_token=create_access_token(user))


@router.post("/logout", response_model=Message)
async def logout(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Revoke a refresh token."""
    await db.execute(
        delete(RefreshToken).where(RefreshToken.token_hash == hash_token(body.refresh_token))
    )
    await db.commit()
    return Message(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    """Get the signed-in user with their buyer or seller profile."""
    return user


@router.put("/me", response_model=UserResponse)
async def update_account(
    user_data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update name, email, password or phone number."""
    data = user_data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in data and data["email"] != user.email:
        result = await db.execute(select(User).where(User.email == data["email"]))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use",
            )

    password = data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))

    for field, value in data.items():
        setattr(user, field, value)

    await db.commit()
    logger.info("account_updated", user_id=str(user.id), fields=sorted(user_data.model_fields_set))
    return await load_user(db, user.id)


@router.get("/", response_model=List[UserResponse])
async def list_users(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """List every user."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.buyer), selectinload(User.seller))
        .order_by(User.created_at.desc())
    )
    return result.scalars().all()


@router.post("/request-otp", response_model=Message)
async def request_otp(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Email a one-time passcode used to pick the BUYER or SELLER role."""
    if user.role != UserRole.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role already assigned",
        )

    now = datetime.utcnow()
    result = await db.execute(select(Otp).where(Otp.user_id == user.id))
    otp = result.scalar_one_or_none()

    if otp and otp.created_at > now - timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="An OTP was sent recently, please wait before requesting another",
        )

    code = generate_otp()
    expires_at = now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    if otp:
        otp.code_hash = hash_token(code)
        otp.expires_at = expires_at
        otp.attempts = 0
        otp.created_at = now
    else:
        db.add(Otp(user_id=user.id, code_hash=hash_token(code), expires_at=expires_at, created_at=now))

    # Commit only once the code has been delivered
    await db.flush()
    await notifications.send_otp(user.email, user.name, code)
    await db.commit()

    logger.info("otp_issued", user_id=str(user.id))
    return Message(message="OTP sent to your email")


@router.post("/assign-role", response_model=UserResponse)
async def assign_role(
    body: AssignRoleRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Verify the OTP and turn the account into a buyer or a seller."""
    if user.role != UserRole.USER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role already assigned",
        )

    if body.role == UserRole.SELLER and not all(
        [body.store_name, body.aadhar_card, body.pan_card, body.gst_number]
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sellers must provide store_name, aadhar_card, pan_card and gst_number",
        )

    result = await db.execute(select(Otp).where(Otp.user_id == user.id))
    otp = result.scalar_one_or_none()

    if not otp:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OTP requested",
        )

    if otp.expires_at < datetime.utcnow():
        await db.delete(otp)
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP has expired",
        )

    if not secrets.compare_digest(otp.code_hash, hash_token(body.otp)):
        otp.attempts += 1
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            await db.delete(otp)
            await db.commit()
            logger.warning("otp_locked", user_id=str(user.id))
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many failed attempts, request a new OTP",
            )
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OTP",
        )

    if body.role == UserRole.BUYER:
        user.role = UserRole.BUYER
        user.is_verified = True
        db.add(Buyer(user_id=user.id))
        background_tasks.add_task(notifications.send_buyer_welcome, user.email, user.name)
    else:
        user.role = UserRole.SELLER
        db.add(Seller(
            user_id=user.id,
            store_name=body.store_name,
            aadhar_card=body.aadhar_card,
            pan_card=body.pan_card,
            gst_number=body.gst_number,
        ))
        background_tasks.add_task(
            notifications.send_seller_under_review, user.email, user.name, body.store_name
        )

    await db.delete(otp)
    await db.commit()

    logger.info("role_assigned", user_id=str(user.id), role=body.role.value)
    return await load_user(db, user.id)


@router.put("/admin/verify-seller", response_model=SellerResponse)
async def verify_seller(
    body: VerifySellerRequest,
    background_tasks: BackgroundTasks,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Mark a seller account as verified."""
    result = await db.execute(
        select(User).options(selectinload(User.seller)).where(User.email == body.email)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    seller = user.seller
    if not seller:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Seller not found",
        )

    if seller.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Seller already verified",
        )

    seller.is_verified = True
    user.is_verified = True
    await db.commit()

    background_tasks.add_task(
        notifications.send_seller_verified, user.email, user.name, seller.store_name
    )
    logger.info("seller_verified", seller_id=str(seller.id))
    return seller


@router.post("/forgot-password", response_model=Message)
async def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Email a password reset link when the account exists."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if user:
        token = generate_reset_token()
        await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
        db.add(PasswordResetToken(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        ))
        await db.commit()

        background_tasks.add_task(notifications.send_password_reset, user.email, user.name, token)
        logger.info("password_reset_requested", user_id=str(user.id))

    return Message(message="If the account exists, a reset link has been sent")


@router.post("/reset-password/{token}", response_model=Message)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    """Set a new password with a reset token."""
    result = await db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token_hash == hash_token(token),
            PasswordResetToken.expires_at > datetime.utcnow(),
        )
    )
    reset = result.scalar_one_or_none()

    if not reset:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )

    user = await db.get(User, reset.user_id)
    user.hashed_password = get_password_hash(body.password)

    await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    await db.commit()

    logger.info("password_reset", user_id=str(user.id))
    return Message(message="Password has been reset")


@router.post("/resend-verification", response_model=Message)
async def resend_verification(user: User = Depends(get_current_user)):
    """Email a fresh verification link."""
    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already verified",
        )

    token = create_email_verification_token(user)
    await notifications.send_email_verification(user.email, user.name, token)
    return Message(message="Verification email sent")


@router.get("/verify-email/{token}", response_model=Message)
async def verify_email(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Confirm an email address from a signed link."""
    payload = decode_token(token, "email_verification", error_status=status.HTTP_400_BAD_REQUEST)
    user_id = parse_subject(payload, error_status=status.HTTP_400_BAD_REQUEST)

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid token",
        )

    if payload.get("email") != user.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token does not match the account email",
        )

    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already verified",
        )

    user.is_verified = True
    await db.commit()

    logger.info("email_verified", user_id=str(user.id))
    return Message(message="Email verified")


@router.get("/sellers", response_model=List[SellerDetail])
async def list_sellers(
    _: User = Depends(require_roles(UserRole.BUYER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """List sellers."""
    result = await db.execute(
        select(Seller).options(selectinload(Seller.user)).order_by(Seller.created_at.desc())
    )
    return result.scalars().all()


@router.get("/buyers", response_model=List[BuyerDetail])
async def list_buyers(
    _: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """List buyers."""
    result = await db.execute(
        select(Buyer).options(selectinload(Buyer.user)).order_by(Buyer.created_at.desc())
    )
    return result.scalars().all()


@router.get("/sellers/{seller_id}", response_model=SellerDetail)
async def get_seller(
    seller_id: UUID,
    _: User = Depends(require_roles(UserRole.BUYER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Get a seller by id."""
    result = await db.execute(
        select(Seller).options(selectinload(Seller.user)).where(Seller.id == seller_id)
    )
    seller = result.scalar_one_or_none()

    if not seller:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Seller not found",
        )

    return seller


@router.get("/buyers/{buyer_id}", response_model=BuyerDetail)
async def get_buyer(
    buyer_id: UUID,
    _: User = Depends(require_roles(UserRole.BUYER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Get a buyer by id."""
    result = await db.execute(
        select(Buyer).options(selectinload(Buyer.user)).where(Buyer.id == buyer_id)
    )
    buyer = result.scalar_one_or_none()

    if not buyer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Buyer not found",
        )

    return buyer


@router.put("/buyer/profile", response_model=UserResponse)
async def update_buyer_profile(
    body: BuyerProfileUpdate,
    user: User = Depends(require_roles(UserRole.BUYER)),
    db: AsyncSession = Depends(get_db),
):
    """Update the buyer's name or phone number."""
    data = body.model_dump(exclude_none=True)
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one field (name or phone_number) is required",
        )

    for field, value in data.items():
        setattr(user, field, value)

    await db.commit()
    return await load_user(db, user.id)


@router.put("/seller/profile", response_model=SellerResponse)
async def update_seller_profile(
    body: SellerProfileUpdate,
    user: User = Depends(require_roles(UserRole.SELLER)),
    db: AsyncSession = Depends(get_db),
):
    """Update the seller's store name or KYC numbers."""
    data = body.model_dump(exclude_none=True)
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one field (store_name, aadhar_card, pan_card or gst_number) is required",
        )

    seller = user.seller
    for field, value in data.items():
        setattr(seller, field, value)

    await db.commit()
    logger.info("seller_profile_updated", seller_id=str(seller.id))
    return seller


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a user and everything that belongs to them."""
    user = await db.get(User, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    await db.delete(user)
    await db.commit()
    logger.info("user_deleted", user_id=str(user_id))
