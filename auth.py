"""
Authentication routes and dependencies
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import create_jwt, decode_jwt, hash_password, validate_email, validate_password_strength, verify_password
from backend.utils.responses import success_response
from config.settings import IS_PRODUCTION
from crud.user import UserRepository
from database import get_db

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

AUTH_COOKIE = "auth_token"
AUTH_COOKIE_MAX_AGE = 604800  # 7 days, matches JWT lifetime


class SignupRequest(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


def _with_auth_cookie(response, token: str, max_age: int = AUTH_COOKIE_MAX_AGE):
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="Lax",
        max_age=max_age,
    )
    return response


def _token_from_request(auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    # Cookie first (browser clients), then Bearer header (API consumers)
    if auth_token:
        return auth_token
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "").strip()
    return None


@auth_router.post("/signup")
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account"""
    if not validate_email(request.email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    try:
        validate_password_strength(request.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user_repo = UserRepository(db)
    if await user_repo.get_user_by_email(request.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = await user_repo.create_user(request.email, hash_password(request.password))
    await db.commit()
    logger.info(f"New user signed up: {user.id}")

    token = create_jwt(str(user.id))
    response = success_response(
        data={"userId": str(user.id), "email": user.email, "token": token},
        message="Account created",
        status=201,
    )
    return _with_auth_cookie(response, token)


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get JWT token"""
    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_email(request.email)
    if not user or not verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="User account is inactive")

    token = create_jwt(str(user.id))
    response = success_response(
        data={"userId": str(user.id), "email": user.email, "token": token},
        message="Logged in",
    )
    return _with_auth_cookie(response, token)


@auth_router.post("/logout")
async def logout():
    """Logout and clear auth token cookie"""
    response = success_response(message="Logged out successfully")
    return _with_auth_cookie(response, "", max_age=0)


# Dependency for protected routes
async def get_current_user(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Resolve the authenticated user from the auth cookie or a Bearer token.

    Returns a dict with user_id (int), email and is_active. Raises 401 when
    the token is missing, invalid, expired, or names an unknown or inactive user.
    """
    token = _token_from_request(auth_token, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication token")

    payload = decode_jwt(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    # JWT stores the subject as a string
    try:
        user_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid user ID in token")

    user = await UserRepository(db).get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User account is inactive")

    return {
        "user_id": user.id,
        "email": user.email,
        "is_active": user.is_active,
    }


@auth_router.get("/me")
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current user information from JWT token"""
    return success_response(
        data={
            "userId": str(current_user["user_id"]),
            "email": current_user["email"],
            "isActive": current_user["is_active"],
        }
    )
