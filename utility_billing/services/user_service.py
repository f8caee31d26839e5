"""User Service - Business Logic Layer"""

from typing import List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.core.exceptions import DuplicateEmail, UserNotFound
from utility_billing.core.logging import get_logger
from utility_billing.core.security import get_password_hash, verify_password
from utility_billing.database import transaction
from utility_billing.models.enums import UserRole
from utility_billing.models.user import User
from utility_billing.schemas.user import UserUpdate
from utility_billing.utils.time import get_utc_now

logger = get_logger(__name__)


class UserService:
    """Service layer for user-related operations"""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        return await db.get(User, user_id)

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        is_active: bool = True,
    ) -> User:
        """
        Create a user account.

        Raises:
            DuplicateEmail: email already registered
        """
        async with transaction(db):
            if await UserService.get_user_by_email(db, email):
                raise DuplicateEmail("Email is already registered")

            user = User(
                name=name,
                email=email.lower(),
                hashed_password=get_password_hash(password),
                role=role,
                is_active=is_active,
            )
            db.add(user)
            try:
                await db.flush()
            except IntegrityError as exc:
                # Lost a race with a concurrent registration
                raise DuplicateEmail("Email is already registered") from exc

        logger.info("User created", extra={"user_id": user.id, "role": UserRole(role).value})
        return user

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """
        Check credentials and stamp last_login.

        Returns:
            The user, or None for unknown email, wrong password or inactive account
        """
        user = await UserService.get_user_by_email(db, email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None

        async with transaction(db):
            user.last_login = get_utc_now()
        return user

    @staticmethod
    async def get_users(
        db: AsyncSession,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[User], int]:
        """Paginated list of users, newest first"""
        total = await db.scalar(select(func.count(User.id)))
        result = await db.execute(
            select(User)
            .order_by(User.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def update_user(db: AsyncSession, user_id: int, user_update: UserUpdate) -> User:
        async with transaction(db):
            user = await UserService.get_user_by_id(db, user_id)
            if not user:
                raise UserNotFound()

            for field, value in user_update.model_dump(exclude_unset=True).items():
                setattr(user, field, value)

        logger.info("User updated", extra={"user_id": user_id})
        return user

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: int) -> None:
        """
        Delete a user. Bills, payments and customers that reference the
        user keep their rows with the reference set to NULL.
        """
        async with transaction(db):
            user = await UserService.get_user_by_id(db, user_id)
            if not user:
                raise UserNotFound()
            await db.delete(user)

        logger.info("User deleted", extra={"user_id": user_id})
