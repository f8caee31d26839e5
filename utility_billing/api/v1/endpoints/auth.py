from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.api import deps
from utility_billing.core import security
from utility_billing.core.exceptions import Unauthenticated
from utility_billing.core.rate_limit import AUTH_LIMIT, limiter
from utility_billing.config import settings
from utility_billing.models.enums import UserRole
from utility_billing.models.user import User
from utility_billing.services.user_service import UserService
from utility_billing.schemas.auth import LoginRequest, RefreshRequest, RegisterRequest, Token
from utility_billing.schemas.user import UserResponse
from utility_billing.schemas.responses import SuccessResponse

router = APIRouter()


def _issue_tokens(user: User) -> Token:
    role = UserRole(user.role).value
    token_data = {"sub": str(user.id), "role": role}
    access_token = security.create_access_token(
        data=token_data,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    refresh_token = security.create_refresh_token(data=token_data)
    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        role=role,
        user_id=user.id,
    )


@router.post("/register", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    register_in: RegisterRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Self-service signup. Always creates a plain user account; staff and
    admin roles are granted by an admin.
    """
    user = await UserService.create_user(
        db,
        name=register_in.name,
        email=register_in.email,
        password=register_in.password,
        role=UserRole.USER,
    )
    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="Account created successfully"
    )


@router.post("/login", response_model=SuccessResponse[Token])
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Login for all roles.
    Returns JWT access token, refresh token, and user role.
    """
    user = await UserService.authenticate_user(db, email=login_data.email, password=login_data.password)
    if not user:
        raise Unauthenticated("Incorrect email or password")

    return SuccessResponse(data=_issue_tokens(user), message="Login successful")


@router.post("/refresh", response_model=SuccessResponse[Token])
async def refresh(
    refresh_in: RefreshRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """Exchange a refresh token for a new token pair"""
    payload = security.decode_token(refresh_in.refresh_token)
    if not payload or payload.get("type") != "refresh":
        raise Unauthenticated("Invalid refresh token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid refresh token")

    user = await UserService.get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise Unauthenticated("Invalid refresh token")

    return SuccessResponse(data=_issue_tokens(user), message="Token refreshed")


@router.get("/me", response_model=SuccessResponse[UserResponse])
async def read_me(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return SuccessResponse(data=UserResponse.model_validate(current_user))
