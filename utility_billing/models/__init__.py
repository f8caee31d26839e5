"""Models Package - Export all models for easy imports"""

from utility_billing.models.base import BaseModel
from utility_billing.models.enums import (
    UserRole,
    CustomerStatus,
    BillType,
    BillStatus,
    PaymentMethod,
    PaymentStatus,
)
from utility_billing.models.user import User
from utility_billing.models.customer import Customer
from utility_billing.models.billing import Bill, Payment


__all__ = [
    # Base classes
    "BaseModel",

    # Enums
    "UserRole",
    "CustomerStatus",
    "BillType",
    "BillStatus",
    "PaymentMethod",
    "PaymentStatus",

    # Models
    "User",
    "Customer",
    "Bill",
    "Payment",
]
