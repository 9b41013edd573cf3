"""
Tests for user storage, password hashing and the auth endpoints
"""
import pytest
from crud.user import UserRepository
from auth_utils import create_expired_jwt, create_jwt, decode_jwt, hash_password, validate_password_strength, verify_password


@pytest.mark.asyncio
async def test_create_and_get_user(test_db):
    """
    Test creating a new user and retrieving it by email.

    This test verifies:
    - User creation via UserRepository.create_user
    - Case-insensitive retrieval via UserRepository.get_user_by_email
    """
    user_repo = UserRepository(test_db)

    hashed_pwd = hash_password("test_password_123")
    created_user = await user_repo.create_user("Test@Example.com", hashed_pwd)
    await test_db.commit()

    assert created_user.email == "test@example.com"  # Email should be lowercased
    assert created_user.is_active is True

    retrieved_user = await user_repo.get_user_by_email("TEST@example.com")
    assert retrieved_user is not None
    assert retrieved_user.id == created_user.id


@pytest.mark.asyncio
async def test_login_verification(test_db):
    """Stored hashes verify the right password and reject a wrong one."""
    user_repo = UserRepository(test_db)
    created_user = await user_repo.create_user("login_test@example.com", hash_password("secure_password_456"))
    await test_db.commit()

    assert created_user.hashed_password != "secure_password_456"
    assert verify_password("secure_password_456", created_user.hashed_password) is True
    assert verify_password("wrong_password", created_user.hashed_password) is False


def test_jwt_round_trip_and_expiry():
    token = create_jwt("42")
    assert decode_jwt(token)["sub"] == "42"
    assert decode_jwt(create_expired_jwt("42")) is None
    assert decode_jwt("not-a-token") is None


@pytest.mark.parametrize("password", ["short1", "allletters", "1234567890"])
def test_weak_passwords_rejected(password):
    with pytest.raises(ValueError):
        validate_password_strength(password)


@pytest.mark.asyncio
async def test_signup_login_me_flow(async_client):
    """
    Test the full account flow over HTTP.

    This test verifies:
    - Signup returns 201, a token, and sets the auth cookie
    - Duplicate signup is rejected
    - Login with the right password succeeds, wrong password is 401
    - /me resolves the user from a Bearer token
    """
    signup = await async_client.post(
        "/api/auth/signup", json={"email": "new@example.com", "password": "notebook123"}
    )
    assert signup.status_code == 201
    body = signup.json()
    assert body["ok"] is True
    assert "auth_token=" in signup.headers["set-cookie"]
    token = body["data"]["token"]

    duplicate = await async_client.post(
        "/api/auth/signup", json={"email": "NEW@example.com", "password": "notebook123"}
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Email already registered"

    bad_login = await async_client.post(
        "/api/auth/login", json={"email": "new@example.com", "password": "wrongpass1"}
    )
    assert bad_login.status_code == 401
    assert bad_login.json()["ok"] is False

    login = await async_client.post(
        "/api/auth/login", json={"email": "new@example.com", "password": "notebook123"}
    )
    assert login.status_code == 200
    assert login.json()["data"]["userId"] == body["data"]["userId"]

    async_client.cookies.clear()
    me = await async_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "new@example.com"


@pytest.mark.asyncio
async def test_protected_routes_require_identity(async_client, user):
    """Missing, expired, or unknown-user tokens are all 401."""
    missing = await async_client.get("/api/commands/history")
    assert missing.status_code == 401

    expired = await async_client.get(
        "/api/commands/history",
        headers={"Authorization": f"Bearer {create_expired_jwt(str(user.id))}"},
    )
    assert expired.status_code == 401

    ghost = await async_client.get(
        "/api/commands/history",
        headers={"Authorization": f"Bearer {create_jwt('99999')}"},
    )
    assert ghost.status_code == 401
    assert ghost.json()["message"] == "User not found"
