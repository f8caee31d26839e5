"""User Management Endpoints (admin only)"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.database import get_db
from utility_billing.core.permissions import Principal
from utility_billing.schemas.user import UserCreate, UserResponse, UserUpdate
from utility_billing.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from utility_billing.services.user_service import UserService
from utility_billing.api.deps import require_admin

router = APIRouter()


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> PaginatedResponse[UserResponse]:
    skip = (page - 1) * page_size
    users, total = await UserService.get_users(db, skip=skip, limit=page_size)
    return PaginatedResponse(
        data=[UserResponse.model_validate(u) for u in users],
        meta=PaginationMeta.build(page, page_size, total),
    )


@router.post("", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> SuccessResponse[UserResponse]:
    """Create an account with any role, e.g. staff"""
    user = await UserService.create_user(
        db,
        name=user_in.name,
        email=user_in.email,
        password=user_in.password,
        role=user_in.role,
    )
    return SuccessResponse(data=UserResponse.model_validate(user), message="User created")


@router.patch("/{user_id}", response_model=SuccessResponse[UserResponse])
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> SuccessResponse[UserResponse]:
    """Change a user's name, role or active flag"""
    user = await UserService.update_user(db, user_id, user_update)
    return SuccessResponse(data=UserResponse.model_validate(user), message="User updated")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> None:
    """
    Delete a user. Bills and payments they created are kept.
    """
    await UserService.delete_user(db, user_id)
