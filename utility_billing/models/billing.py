"""Billing Models: bills and the payments applied to them"""

from datetime import date
from typing import Optional

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import relationship

from utility_billing.models.base import BaseModel
from utility_billing.models.enums import (
    BillStatus,
    BillType,
    PaymentMethod,
    PaymentStatus,
    enum_values,
)
from utility_billing.utils.time import get_utc_today


class Bill(BaseModel):
    """
    Metered billing statement for one customer.

    consumption, amount, tax_amount and total_amount are derived from the
    readings, rate and tax rate when the bill is created. payment_status is
    only changed by payment recomputation or a staff override.
    """
    __tablename__ = "bills"

    bill_number = Column(String(20), unique=True, nullable=False, index=True)
    customer_id = Column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bill_type = Column(
        ENUM(BillType, name="bill_type", values_callable=enum_values),
        nullable=False,
    )

    # Readings
    previous_reading = Column(Numeric(10, 2), nullable=True)
    current_reading = Column(Numeric(10, 2), nullable=True)
    consumption = Column(Numeric(10, 2), nullable=True)

    # Charges
    rate = Column(Numeric(10, 4), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=True)
    tax_amount = Column(Numeric(10, 2), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=True)

    due_date = Column(Date, nullable=False, index=True)
    payment_status = Column(
        ENUM(BillStatus, name="bill_status", values_callable=enum_values),
        default=BillStatus.PENDING,
        nullable=False,
        index=True,
    )
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    customer = relationship("Customer", back_populates="bills")
    creator = relationship("User", back_populates="bills_created")
    payments = relationship("Payment", back_populates="bill", passive_deletes=True)

    def effective_status(self, today: Optional[date] = None) -> BillStatus:
        """Stored status, reported as OVERDUE once an unpaid bill passes its due date"""
        today = today or get_utc_today()
        if (
            self.payment_status in (BillStatus.PENDING, BillStatus.PARTIALLY_PAID)
            and self.due_date is not None
            and self.due_date < today
        ):
            return BillStatus.OVERDUE
        return self.payment_status

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} - {self.total_amount} - {self.payment_status}>"


class Payment(BaseModel):
    """
    Money received against a bill. Rows are never deleted; reversal is
    done by moving status to VOID or REFUNDED.
    """
    __tablename__ = "payments"

    payment_number = Column(String(20), unique=True, nullable=False, index=True)
    customer_id = Column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bill_id = Column(
        Integer,
        ForeignKey("bills.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=get_utc_today, index=True)
    payment_method = Column(
        ENUM(PaymentMethod, name="payment_method", values_callable=enum_values),
        nullable=False,
    )
    transaction_id = Column(String(100), nullable=True)
    reference_number = Column(String(100), nullable=True)
    status = Column(
        ENUM(PaymentStatus, name="payment_status", values_callable=enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes = Column(Text, nullable=True)
    voided_at = Column(DateTime, nullable=True)

    created_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    customer = relationship("Customer", back_populates="payments")
    bill = relationship("Bill", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.payment_number} - {self.amount} - {self.status}>"
