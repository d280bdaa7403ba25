"""Account, authentication and role assignment tests."""
from datetime import datetime, timedelta

from sqlalchemy import select, update

from conftest import API, OTP_CODE, PASSWORD, make_seller, register, seller_fields, unique_email
from shopfront.core import redis as redis_module
from shopfront.core.database import AsyncSessionLocal
from shopfront.core.email import EmailDeliveryError, email_service
from shopfront.core.security import create_email_verification_token, hash_token
from shopfront.models.user import Otp, PasswordResetToken, User


async def test_register_returns_tokens(client):
    response = await client.post(
        f"{API}/users/register",
        json={"name": "Alice", "email": "alice@example.com", "password": PASSWORD},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["token_type"] == "bearer"

    me = await client.get(
        f"{API}/users/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["role"] == "USER"
    assert me.json()["buyer"] is None


async def test_register_twice_with_same_email_is_rejected(client):
    await register(client, "twice@example.com")

    response = await client.post(
        f"{API}/users/register",
        json={"name": "Again", "email": "twice@example.com", "password": PASSWORD},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


async def test_register_rejects_weak_password(client):
    response = await client.post(
        f"{API}/users/register",
        json={"name": "Weak", "email": "weak@example.com", "password": "password"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Validation error"


async def test_signin_with_wrong_password(client):
    await register(client, "carol@example.com")

    response = await client.post(
        f"{API}/users/signin", json={"email": "carol@example.com", "password": "Wrong123!"}
    )

    assert response.status_code == 401


async def test_signin_updates_last_login(client):
    await register(client, "dave@example.com")

    response = await client.post(
        f"{API}/users/signin", json={"email": "dave@example.com", "password": PASSWORD}
    )
    assert response.status_code == 200

    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    me = await client.get(f"{API}/users/me", headers=headers)
    assert me.json()["last_login"] is not None


async def test_signin_is_throttled(client, monkeypatch):
    async def saturated(key, window_seconds):
        return 1000

    monkeypatch.setattr(redis_module.redis_client, "hit", saturated)

    response = await client.post(
        f"{API}/users/signin", json={"email": "nobody@example.com", "password": PASSWORD}
    )

    assert response.status_code == 429


async def test_admin_signin_rejects_non_admin(client, buyer):
    response = await client.post(
        f"{API}/users/admin/signin", json={"email": buyer.email, "password": PASSWORD}
    )

    assert response.status_code == 403


async def test_me_requires_token(client):
    response = await client.get(f"{API}/users/me")
    assert response.status_code == 401

    response = await client.get(f"{API}/users/me", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401


async def test_refresh_and_logout(client):
    response = await client.post(
        f"{API}/users/register",
        json={"name": "Erin", "email": "erin@example.com", "password": PASSWORD},
    )
    refresh_token = response.json()["refresh_token"]

    response = await client.post(f"{API}/users/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert response.json()["access_token"]

    response = await client.post(f"{API}/users/logout", json={"refresh_token": refresh_token})
    assert response.status_code == 200

    response = await client.post(f"{API}/users/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 401


async def test_refresh_rejects_access_token(client):
    headers = await register(client, "frank@example.com")
    access_token = headers["Authorization"].split()[1]

    response = await client.post(f"{API}/users/refresh", json={"refresh_token": access_token})

    assert response.status_code == 401


async def test_update_account_rejects_taken_email(client, buyer):
    await register(client, "taken@example.com")

    response = await client.put(
        f"{API}/users/me", headers=buyer.headers, json={"email": "taken@example.com"}
    )

    assert response.status_code == 400


async def test_update_account_password_revokes_refresh_tokens(client):
    response = await client.post(
        f"{API}/users/register",
        json={"name": "Gina", "email": "gina@example.com", "password": PASSWORD},
    )
    tokens = response.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    response = await client.put(
        f"{API}/users/me", headers=headers, json={"name": "Gina G", "password": "Changed123!"}
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Gina G"

    response = await client.post(f"{API}/users/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401

    response = await client.post(
        f"{API}/users/signin", json={"email": "gina@example.com", "password": "Changed123!"}
    )
    assert response.status_code == 200


async def test_assign_buyer_role(client, outbox):
    email = unique_email("newbuyer")
    headers = await register(client, email, "Hana")

    response = await client.post(f"{API}/users/request-otp", headers=headers)
    assert response.status_code == 200
    assert any(OTP_CODE in mail["html"] for mail in outbox if mail["to"] == email)

    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "BUYER"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "BUYER"
    assert body["is_verified"] is True
    assert body["buyer"]["id"]
    assert any(mail["subject"] == "Your buyer account is ready" for mail in outbox)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Otp))
        assert result.scalars().all() == []


async def test_assign_seller_role_requires_kyc_fields(client):
    headers = await register(client, unique_email("ivan"))
    await client.post(f"{API}/users/request-otp", headers=headers)

    response = await client.post(
        f"{API}/users/assign-role",
        headers=headers,
        json={"otp": OTP_CODE, "role": "SELLER", "store_name": "Ivan's"},
    )

    assert response.status_code == 400


async def test_assign_seller_role_starts_unverified(client, outbox):
    seller = await make_seller(client)

    assert seller.profile["role"] == "SELLER"
    assert seller.profile["seller"]["is_verified"] is False
    assert any(mail["subject"] == "Seller application under review" for mail in outbox)


async def test_assign_role_rejects_admin_role(client):
    headers = await register(client, unique_email("sneaky"))
    await client.post(f"{API}/users/request-otp", headers=headers)

    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "ADMIN"}
    )

    assert response.status_code == 400


async def test_request_otp_only_for_unassigned_users(client, buyer):
    response = await client.post(f"{API}/users/request-otp", headers=buyer.headers)
    assert response.status_code == 403


async def test_request_otp_cooldown(client):
    headers = await register(client, unique_email("jack"))

    first = await client.post(f"{API}/users/request-otp", headers=headers)
    second = await client.post(f"{API}/users/request-otp", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 429


async def test_request_otp_can_be_retried_after_failed_delivery(client, monkeypatch, outbox):
    headers = await register(client, unique_email("lena"))
    attempts = []

    async def flaky_send(to, subject, html):
        attempts.append(to)
        if len(attempts) == 1:
            raise EmailDeliveryError("smtp down")
        outbox.append({"to": to, "subject": subject, "html": html})

    monkeypatch.setattr(email_service, "send", flaky_send)

    first = await client.post(f"{API}/users/request-otp", headers=headers)
    assert first.status_code == 502

    retry = await client.post(f"{API}/users/request-otp", headers=headers)
    assert retry.status_code == 200
    assert outbox[-1]["subject"] == "Your verification code"


async def test_assign_role_without_otp(client):
    headers = await register(client, unique_email("kim"))

    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "BUYER"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "No OTP requested"


async def test_expired_otp_is_rejected(client):
    email = unique_email("lee")
    headers = await register(client, email)
    await client.post(f"{API}/users/request-otp", headers=headers)

    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Otp).values(expires_at=datetime.utcnow() - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "BUYER"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "OTP has expired"


async def test_wrong_otp_attempts_are_limited(client):
    headers = await register(client, unique_email("mia"))
    await client.post(f"{API}/users/request-otp", headers=headers)

    for _ in range(4):
        response = await client.post(
            f"{API}/users/assign-role", headers=headers, json={"otp": "000000", "role": "BUYER"}
        )
        assert response.status_code == 400

    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": "000000", "role": "BUYER"}
    )
    assert response.status_code == 429

    # The passcode is gone, even the right code no longer works
    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "BUYER"}
    )
    assert response.status_code == 400


async def test_admin_verifies_seller(client, seller, admin, outbox):
    response = await client.put(
        f"{API}/users/admin/verify-seller", headers=admin.headers, json={"email": seller.email}
    )

    assert response.status_code == 200
    assert response.json()["is_verified"] is True
    assert any(mail["subject"] == "Seller account verified" for mail in outbox)

    again = await client.put(
        f"{API}/users/admin/verify-seller", headers=admin.headers, json={"email": seller.email}
    )
    assert again.status_code == 400


async def test_verify_seller_unknown_or_not_a_seller(client, buyer, admin):
    response = await client.put(
        f"{API}/users/admin/verify-seller", headers=admin.headers, json={"email": "ghost@example.com"}
    )
    assert response.status_code == 404

    response = await client.put(
        f"{API}/users/admin/verify-seller", headers=admin.headers, json={"email": buyer.email}
    )
    assert response.status_code == 404


async def test_verify_seller_requires_admin(client, seller, buyer):
    response = await client.put(
        f"{API}/users/admin/verify-seller", headers=buyer.headers, json={"email": seller.email}
    )
    assert response.status_code == 403


async def test_forgot_and_reset_password(client, outbox):
    await register(client, "nina@example.com")

    response = await client.post(f"{API}/users/forgot-password", json={"email": "nina@example.com"})
    assert response.status_code == 200

    mail = next(m for m in outbox if m["subject"] == "Password reset")
    token = mail["html"].split("/reset-password/")[1].split('"')[0]

    response = await client.post(
        f"{API}/users/reset-password/{token}", json={"password": "BrandNew123!"}
    )
    assert response.status_code == 200

    response = await client.post(
        f"{API}/users/signin", json={"email": "nina@example.com", "password": "BrandNew123!"}
    )
    assert response.status_code == 200

    # Tokens are single use
    response = await client.post(
        f"{API}/users/reset-password/{token}", json={"password": "Another123!"}
    )
    assert response.status_code == 400


async def test_forgot_password_unknown_email_looks_the_same(client, outbox):
    response = await client.post(f"{API}/users/forgot-password", json={"email": "who@example.com"})

    assert response.status_code == 200
    assert outbox == []


async def test_reset_password_enforces_strength(client, outbox):
    await register(client, "pia@example.com")
    await client.post(f"{API}/users/forgot-password", json={"email": "pia@example.com"})
    mail = next(m for m in outbox if m["subject"] == "Password reset")
    token = mail["html"].split("/reset-password/")[1].split('"')[0]

    response = await client.post(
        f"{API}/users/reset-password/{token}", json={"password": "alllowercase1"}
    )
    assert response.status_code == 400

    response = await client.post(
        f"{API}/users/reset-password/{token}", json={"password": "BrandNew123!"}
    )
    assert response.status_code == 200


async def test_reset_password_with_expired_token(client):
    await register(client, "omar@example.com")

    async with AsyncSessionLocal() as session:
        user = (await session.execute(select(User).where(User.email == "omar@example.com"))).scalar_one()
        session.add(PasswordResetToken(
            user_id=user.id,
            token_hash=hash_token("stale-token"),
            expires_at=datetime.utcnow() - timedelta(minutes=5),
        ))
        await session.commit()

    response = await client.post(
        f"{API}/users/reset-password/stale-token", json={"password": "BrandNew123!"}
    )
    assert response.status_code == 400


async def test_email_verification_flow(client, outbox):
    headers = await register(client, "pia@example.com")

    response = await client.post(f"{API}/users/resend-verification", headers=headers)
    assert response.status_code == 200

    mail = next(m for m in outbox if m["subject"] == "Verify your email")
    token = mail["html"].split("/verify-email/")[1].split('"')[0]

    response = await client.get(f"{API}/users/verify-email/{token}")
    assert response.status_code == 200

    response = await client.get(f"{API}/users/verify-email/{token}")
    assert response.status_code == 400

    response = await client.post(f"{API}/users/resend-verification", headers=headers)
    assert response.status_code == 400


async def test_verify_email_with_mismatched_email(client):
    await register(client, "quinn@example.com")

    async with AsyncSessionLocal() as session:
        user = (await session.execute(select(User).where(User.email == "quinn@example.com"))).scalar_one()
        token = create_email_verification_token(user)
        user.email = "quinn.new@example.com"
        await session.commit()

    response = await client.get(f"{API}/users/verify-email/{token}")
    assert response.status_code == 400


async def test_verify_email_with_garbage_token(client):
    response = await client.get(f"{API}/users/verify-email/not-a-token")
    assert response.status_code == 400


async def test_admin_lists_and_deletes_users(client, buyer, admin):
    response = await client.get(f"{API}/users/", headers=admin.headers)
    assert response.status_code == 200
    emails = {user["email"] for user in response.json()}
    assert buyer.email in emails

    response = await client.delete(f"{API}/users/{buyer.user_id}", headers=admin.headers)
    assert response.status_code == 204

    response = await client.delete(f"{API}/users/{buyer.user_id}", headers=admin.headers)
    assert response.status_code == 404

    response = await client.get(f"{API}/users/me", headers=buyer.headers)
    assert response.status_code == 401


async def test_list_users_requires_admin(client, buyer):
    response = await client.get(f"{API}/users/", headers=buyer.headers)
    assert response.status_code == 403


async def test_sellers_and_buyers_directories(client, buyer, seller, admin):
    response = await client.get(f"{API}/users/sellers", headers=buyer.headers)
    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [seller.seller_id]
    assert response.json()[0]["user"]["email"] == seller.email

    response = await client.get(f"{API}/users/sellers", headers=seller.headers)
    assert response.status_code == 403

    response = await client.get(f"{API}/users/buyers", headers=seller.headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [buyer.buyer_id]

    response = await client.get(f"{API}/users/sellers/{seller.seller_id}", headers=admin.headers)
    assert response.status_code == 200
    assert response.json()["store_name"] == seller.profile["seller"]["store_name"]

    response = await client.get(f"{API}/users/buyers/{buyer.buyer_id}", headers=buyer.headers)
    assert response.status_code == 200

    response = await client.get(f"{API}/users/buyers/{seller.seller_id}", headers=admin.headers)
    assert response.status_code == 404


async def test_buyer_profile_update(client, buyer):
    response = await client.put(f"{API}/users/buyer/profile", headers=buyer.headers, json={})
    assert response.status_code == 400

    response = await client.put(
        f"{API}/users/buyer/profile", headers=buyer.headers, json={"phone_number": "9876543210"}
    )
    assert response.status_code == 200
    assert response.json()["phone_number"] == "9876543210"


async def test_seller_profile_update(client, seller, buyer):
    response = await client.put(f"{API}/users/seller/profile", headers=seller.headers, json={})
    assert response.status_code == 400

    fields = seller_fields()
    response = await client.put(
        f"{API}/users/seller/profile", headers=seller.headers, json={"store_name": fields["store_name"]}
    )
    assert response.status_code == 200
    assert response.json()["store_name"] == fields["store_name"]

    response = await client.put(
        f"{API}/users/seller/profile", headers=buyer.headers, json={"store_name": "Nope"}
    )
    assert response.status_code == 403


async def test_duplicate_seller_kyc_conflicts(client, seller):
    headers = await register(client, unique_email("copycat"))
    await client.post(f"{API}/users/request-otp", headers=headers)

    fields = seller_fields()
    fields["pan_card"] = seller.profile["seller"]["pan_card"]
    response = await client.post(
        f"{API}/users/assign-role", headers=headers, json={"otp": OTP_CODE, "role": "SELLER", **fields}
    )

    assert response.status_code == 409
