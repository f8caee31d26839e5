"""Back-office User Model"""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import relationship

from utility_billing.models.base import BaseModel
from utility_billing.models.enums import UserRole, enum_values


class User(BaseModel):
    """
    Staff and portal accounts. Role drives every authorization decision.
    Bills and payments keep their rows when the user is deleted.
    """
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    role = Column(
        ENUM(UserRole, name="user_role", values_callable=enum_values),
        default=UserRole.USER,
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    customers = relationship("Customer", back_populates="user", passive_deletes=True)
    bills_created = relationship("Bill", back_populates="creator", passive_deletes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        """Admins count as staff"""
        return self.role in (UserRole.ADMIN, UserRole.STAFF)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
