from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from utility_billing.models.enums import BillStatus, BillType, PaymentMethod, PaymentStatus
from utility_billing.schemas.customer import CustomerBrief


# Bills

class BillCreate(BaseModel):
    customer_id: int
    bill_type: BillType
    previous_reading: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    current_reading: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=4)
    tax_rate: Optional[Decimal] = Field(
        None,
        ge=0,
        le=100,
        max_digits=5,
        decimal_places=2,
        description="Percent; defaults to the configured rate",
    )
    due_date: date
    notes: Optional[str] = None


class BillStatusUpdate(BaseModel):
    status: BillStatus


class BillResponse(BaseModel):
    id: int
    bill_number: str
    customer_id: int
    bill_type: BillType
    previous_reading: Optional[Decimal] = None
    current_reading: Optional[Decimal] = None
    consumption: Optional[Decimal] = None
    rate: Decimal
    tax_rate: Decimal
    amount: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    due_date: date
    payment_status: BillStatus
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Payments

class PaymentCreate(BaseModel):
    bill_id: int
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=100)
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    customer_id: int
    bill_id: Optional[int] = None
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    reference_number: Optional[str] = None
    status: PaymentStatus
    notes: Optional[str] = None
    voided_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillDetail(BaseModel):
    """Bill with its payments and the reconciled balance"""
    bill: BillResponse
    customer: CustomerBrief
    payments: List[PaymentResponse]
    amount_paid: Decimal
    balance: Optional[Decimal] = None
    effective_status: BillStatus
