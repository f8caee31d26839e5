"""API Dependencies"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.database import get_db
from utility_billing.core.exceptions import Unauthenticated
from utility_billing.core.permissions import Action, Principal, authorize
from utility_billing.core.security import decode_token
from utility_billing.services.user_service import UserService
from utility_billing.models.user import User

# Missing credentials are reported through Unauthenticated, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """
    Resolve the caller from the bearer access token.

    Raises:
        Unauthenticated: missing, invalid or expired token, wrong token
            type, unknown or inactive user
    """
    if credentials is None:
        raise Unauthenticated()

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise Unauthenticated()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated()

    user = await UserService.get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise Unauthenticated()
    return user


async def get_principal(current_user: User = Depends(get_current_user)) -> Principal:
    return Principal.from_user(current_user)


def require(action: Action):
    """Dependency factory: the caller must hold ``action`` regardless of ownership"""

    async def checker(principal: Principal = Depends(get_principal)) -> Principal:
        return authorize(principal, action)

    return checker


require_staff = require(Action.MANAGE_BILLING)
require_reports = require(Action.VIEW_REPORTS)
require_admin = require(Action.MANAGE_USERS)
