"""Domain Exceptions

Services raise these; the API layer turns them into ``ErrorResponse``
envelopes with the matching HTTP status.
"""

from typing import Dict, List, Optional


class BillingError(Exception):
    """Base class for every error the billing services raise on purpose."""

    status_code: int = 400
    code: str = "BILLING_ERROR"
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BillingError):
    """Missing or malformed input. Carries per-field messages."""

    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields: Dict[str, str] = fields or {}

    @classmethod
    def for_fields(cls, fields: Dict[str, str]) -> "ValidationError":
        names: List[str] = sorted(fields)
        return cls(f"Invalid value for: {', '.join(names)}", fields=fields)


# Not found

class NotFound(BillingError):
    status_code = 404
    code = "RESOURCE_NOT_FOUND"
    default_message = "Resource not found"


class CustomerNotFound(NotFound):
    code = "CUSTOMER_NOT_FOUND"
    default_message = "Customer not found"


class BillNotFound(NotFound):
    code = "BILL_NOT_FOUND"
    default_message = "Bill not found"


class PaymentNotFound(NotFound):
    code = "PAYMENT_NOT_FOUND"
    default_message = "Payment not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


# Authorization

class Unauthenticated(BillingError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Could not validate credentials"


class Forbidden(BillingError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Not enough permissions"


# Conflicts

class Conflict(BillingError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class DuplicateEmail(Conflict):
    code = "DUPLICATE_EMAIL"
    default_message = "A record with this email already exists"


class DuplicateMeterNumber(Conflict):
    code = "DUPLICATE_METER_NUMBER"
    default_message = "Meter number is already assigned to another customer"


class HasDependentPayments(Conflict):
    code = "HAS_DEPENDENT_PAYMENTS"
    default_message = "Cannot modify a bill with associated payments"


class HasDependentRecords(Conflict):
    code = "HAS_DEPENDENT_RECORDS"
    default_message = "Cannot delete a record with associated bills or payments"


class AlreadyVoided(Conflict):
    code = "ALREADY_VOIDED"
    default_message = "Payment is already voided"


class InvalidStatusTransition(Conflict):
    code = "INVALID_STATUS_TRANSITION"
    default_message = "Status change is not allowed"


# Internal

class IdentifierCollision(BillingError):
    """Every generated identifier collided with an existing row."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Could not allocate a unique identifier"
