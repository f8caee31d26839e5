"""Read-only report projections"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel

from utility_billing.models.enums import BillStatus, BillType, PaymentMethod
from utility_billing.schemas.customer import CustomerBrief


class AmountBucket(BaseModel):
    count: int
    amount: Decimal


class DashboardMetrics(BaseModel):
    total_customers: int
    pending_bills: AmountBucket
    overdue_bills: AmountBucket
    monthly_revenue: Decimal


class RecentPayment(BaseModel):
    id: int
    payment_number: str
    amount: Decimal
    payment_date: date
    customer: Optional[str] = None
    bill_number: Optional[str] = None


class UpcomingBill(BaseModel):
    id: int
    bill_number: str
    total_amount: Optional[Decimal] = None
    due_date: date
    status: BillStatus
    customer: Optional[str] = None


class Dashboard(BaseModel):
    metrics: DashboardMetrics
    recent_payments: List[RecentPayment]
    upcoming_bills: List[UpcomingBill]


class FinancialPaymentRow(BaseModel):
    payment_number: str
    payment_date: date
    amount: Decimal
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    bill_number: Optional[str] = None
    bill_type: Optional[BillType] = None
    customer: Optional[CustomerBrief] = None


class MonthlyTotal(BaseModel):
    month: str  # YYYY-MM
    total: Decimal


class FinancialReport(BaseModel):
    start_date: date
    end_date: date
    bill_type: Optional[BillType] = None
    total_amount: Decimal
    total_payments: int
    by_method: Dict[str, Decimal]
    monthly: List[MonthlyTotal]
    payments: List[FinancialPaymentRow]


class StatementLine(BaseModel):
    bill_number: str
    bill_type: BillType
    due_date: date
    total_amount: Decimal
    amount_paid: Decimal
    status: BillStatus


class CustomerStatement(BaseModel):
    customer: CustomerBrief
    start_date: date
    end_date: date
    bills: List[StatementLine]
    total_billed: Decimal
    total_paid: Decimal
    balance: Decimal


class CollectionLine(BaseModel):
    bill_number: str
    customer: Optional[CustomerBrief] = None
    due_date: date
    amount_billed: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    is_paid: bool
    is_overdue: bool


class CollectionEfficiencyReport(BaseModel):
    year: int
    month: int
    total_billed: Decimal
    total_collected: Decimal
    collection_efficiency: Decimal  # percent
    bills: List[CollectionLine]


class OverdueLine(BaseModel):
    bill_number: str
    customer: Optional[CustomerBrief] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    due_date: date
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    days_overdue: int


class OverdueBillsReport(BaseModel):
    days_overdue: int
    total_overdue: Decimal
    total_bills: int
    bills: List[OverdueLine]
