"""Centralized Enum Definitions"""

import enum


# Users
class UserRole(str, enum.Enum):
    """User roles for RBAC"""
    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"


# Customers
class CustomerStatus(str, enum.Enum):
    """Customer account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


# Bills
class BillType(str, enum.Enum):
    """Metered service a bill charges for"""
    WATER = "water"
    ELECTRICITY = "electricity"
    COMBINED = "combined"


class BillStatus(str, enum.Enum):
    """Bill payment status"""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Payments
class PaymentMethod(str, enum.Enum):
    """How a payment was tendered"""
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"
    CHECK = "check"


class PaymentStatus(str, enum.Enum):
    """Payment status. Only COMPLETED counts toward a bill's paid total."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    VOID = "void"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Store enum values (not member names) in the database"""
    return [member.value for member in enum_cls]
