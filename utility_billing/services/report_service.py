"""Report Service - dashboard metrics and read-only financial reports"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from utility_billing.config import settings
from utility_billing.core.exceptions import CustomerNotFound
from utility_billing.models.billing import Bill, Payment
from utility_billing.models.customer import Customer
from utility_billing.models.enums import BillStatus, BillType, PaymentStatus
from utility_billing.schemas.customer import CustomerBrief
from utility_billing.schemas.report import (
    AmountBucket,
    CollectionEfficiencyReport,
    CollectionLine,
    CustomerStatement,
    Dashboard,
    DashboardMetrics,
    FinancialPaymentRow,
    FinancialReport,
    MonthlyTotal,
    OverdueBillsReport,
    OverdueLine,
    RecentPayment,
    StatementLine,
    UpcomingBill,
)
from utility_billing.services.bill_service import BillService
from utility_billing.services.calculator import round2
from utility_billing.utils.time import get_utc_today, month_bounds

UNPAID_STATUSES = (BillStatus.PENDING, BillStatus.PARTIALLY_PAID, BillStatus.OVERDUE)
DASHBOARD_LIST_SIZE = 5
UPCOMING_WINDOW_DAYS = 30


def collection_efficiency(billed: Decimal, collected: Decimal) -> Decimal:
    """Collected as a percentage of billed; 0 when nothing was billed"""
    if billed <= 0:
        return Decimal("0.00")
    return round2(Decimal(collected) / Decimal(billed) * 100)


def monthly_totals(payments: Iterable[Payment]) -> List[MonthlyTotal]:
    """Sum payment amounts per YYYY-MM, in chronological order"""
    buckets: Dict[str, Decimal] = {}
    for payment in payments:
        key = f"{payment.payment_date:%Y-%m}"
        buckets[key] = buckets.get(key, Decimal("0")) + Decimal(payment.amount)
    return [MonthlyTotal(month=month, total=round2(buckets[month])) for month in sorted(buckets)]


def _pending_clause(today: date):
    # Past-due pending bills belong to the overdue bucket
    return and_(Bill.payment_status == BillStatus.PENDING, Bill.due_date >= today)


def _overdue_clause(today: date):
    return or_(
        Bill.payment_status == BillStatus.OVERDUE,
        and_(
            Bill.payment_status.in_([BillStatus.PENDING, BillStatus.PARTIALLY_PAID]),
            Bill.due_date < today,
        ),
    )


def _customer_name(customer: Optional[Customer]) -> Optional[str]:
    return customer.full_name if customer else None


def _total(bill: Bill) -> Decimal:
    return Decimal(bill.total_amount) if bill.total_amount is not None else Decimal("0")


class ReportService:
    """Aggregations over bills and payments. Nothing here writes."""

    @staticmethod
    async def _bucket(db: AsyncSession, clause) -> AmountBucket:
        row = (await db.execute(
            select(func.count(Bill.id), func.coalesce(func.sum(Bill.total_amount), 0)).where(clause)
        )).one()
        return AmountBucket(count=row[0] or 0, amount=round2(row[1] or 0))

    @staticmethod
    async def get_dashboard(db: AsyncSession, today: Optional[date] = None) -> Dashboard:
        today = today or get_utc_today()
        month_start, month_end = month_bounds(today.year, today.month)

        total_customers = await db.scalar(select(func.count(Customer.id)))
        pending = await ReportService._bucket(db, _pending_clause(today))
        overdue = await ReportService._bucket(db, _overdue_clause(today))
        monthly_revenue = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.status == PaymentStatus.COMPLETED,
                Payment.payment_date.between(month_start, month_end),
            )
        )

        recent = (await db.execute(
            select(Payment)
            .where(Payment.status == PaymentStatus.COMPLETED)
            .options(selectinload(Payment.customer), selectinload(Payment.bill))
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .limit(DASHBOARD_LIST_SIZE)
        )).scalars().all()

        upcoming = (await db.execute(
            select(Bill)
            .where(
                Bill.payment_status.in_([BillStatus.PENDING, BillStatus.PARTIALLY_PAID]),
                Bill.due_date.between(today, today + timedelta(days=UPCOMING_WINDOW_DAYS)),
            )
            .options(selectinload(Bill.customer))
            .order_by(Bill.due_date.asc())
            .limit(DASHBOARD_LIST_SIZE)
        )).scalars().all()

        return Dashboard(
            metrics=DashboardMetrics(
                total_customers=total_customers or 0,
                pending_bills=pending,
                overdue_bills=overdue,
                monthly_revenue=round2(monthly_revenue or 0),
            ),
            recent_payments=[
                RecentPayment(
                    id=p.id,
                    payment_number=p.payment_number,
                    amount=p.amount,
                    payment_date=p.payment_date,
                    customer=_customer_name(p.customer),
                    bill_number=p.bill.bill_number if p.bill else None,
                )
                for p in recent
            ],
            upcoming_bills=[
                UpcomingBill(
                    id=b.id,
                    bill_number=b.bill_number,
                    total_amount=b.total_amount,
                    due_date=b.due_date,
                    status=b.payment_status,
                    customer=_customer_name(b.customer),
                )
                for b in upcoming
            ],
        )

    @staticmethod
    async def financial_report(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        bill_type: Optional[BillType] = None,
    ) -> FinancialReport:
        """Completed payments in a date range, optionally for one bill type"""
        end_date = end_date or get_utc_today()
        start_date = start_date or end_date - timedelta(days=settings.REPORT_DEFAULT_DAYS)

        stmt = (
            select(Payment)
            .where(
                Payment.status == PaymentStatus.COMPLETED,
                Payment.payment_date.between(start_date, end_date),
            )
            .options(selectinload(Payment.customer), selectinload(Payment.bill))
            .order_by(Payment.payment_date.asc(), Payment.id.asc())
        )
        if bill_type:
            stmt = stmt.join(Bill, Payment.bill_id == Bill.id).where(Bill.bill_type == bill_type)
        payments = (await db.execute(stmt)).scalars().all()

        by_method: Dict[str, Decimal] = {}
        for p in payments:
            method = p.payment_method.value
            by_method[method] = by_method.get(method, Decimal("0")) + Decimal(p.amount)

        return FinancialReport(
            start_date=start_date,
            end_date=end_date,
            bill_type=bill_type,
            total_amount=round2(sum((Decimal(p.amount) for p in payments), Decimal("0"))),
            total_payments=len(payments),
            by_method={method: round2(amount) for method, amount in by_method.items()},
            monthly=monthly_totals(payments),
            payments=[
                FinancialPaymentRow(
                    payment_number=p.payment_number,
                    payment_date=p.payment_date,
                    amount=p.amount,
                    payment_method=p.payment_method,
                    reference_number=p.reference_number,
                    bill_number=p.bill.bill_number if p.bill else None,
                    bill_type=p.bill.bill_type if p.bill else None,
                    customer=CustomerBrief.model_validate(p.customer) if p.customer else None,
                )
                for p in payments
            ],
        )

    @staticmethod
    async def customer_statement(
        db: AsyncSession,
        customer_pk: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> CustomerStatement:
        """
        Bills due within the range with what was paid on each.

        Raises:
            CustomerNotFound
        """
        customer = await db.get(Customer, customer_pk)
        if not customer:
            raise CustomerNotFound()

        end_date = end_date or get_utc_today()
        start_date = start_date or end_date - timedelta(days=settings.REPORT_DEFAULT_DAYS)

        bills = (await db.execute(
            select(Bill)
            .where(Bill.customer_id == customer_pk, Bill.due_date.between(start_date, end_date))
            .options(selectinload(Bill.payments))
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )).scalars().all()

        lines = []
        total_billed = Decimal("0")
        total_paid = Decimal("0")
        for bill in bills:
            paid = BillService.amount_paid(bill)
            if bill.payment_status != BillStatus.CANCELLED:
                total_billed += _total(bill)
            total_paid += paid
            lines.append(StatementLine(
                bill_number=bill.bill_number,
                bill_type=bill.bill_type,
                due_date=bill.due_date,
                total_amount=_total(bill),
                amount_paid=paid,
                status=bill.effective_status(),
            ))

        return CustomerStatement(
            customer=CustomerBrief.model_validate(customer),
            start_date=start_date,
            end_date=end_date,
            bills=lines,
            total_billed=round2(total_billed),
            total_paid=round2(total_paid),
            balance=round2(total_billed - total_paid),
        )

    @staticmethod
    async def collection_efficiency_report(
        db: AsyncSession,
        year: int,
        month: int,
        today: Optional[date] = None,
    ) -> CollectionEfficiencyReport:
        """Billed vs collected for non-cancelled bills due in a calendar month"""
        today = today or get_utc_today()
        month_start, month_end = month_bounds(year, month)

        bills = (await db.execute(
            select(Bill)
            .where(
                Bill.due_date.between(month_start, month_end),
                Bill.payment_status != BillStatus.CANCELLED,
            )
            .options(selectinload(Bill.customer), selectinload(Bill.payments))
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )).scalars().all()

        lines = []
        total_billed = Decimal("0")
        total_collected = Decimal("0")
        for bill in bills:
            billed = _total(bill)
            paid = BillService.amount_paid(bill)
            total_billed += billed
            total_collected += paid
            lines.append(CollectionLine(
                bill_number=bill.bill_number,
                customer=CustomerBrief.model_validate(bill.customer) if bill.customer else None,
                due_date=bill.due_date,
                amount_billed=billed,
                amount_paid=paid,
                amount_due=round2(billed - paid),
                is_paid=bill.payment_status == BillStatus.PAID,
                is_overdue=bill.effective_status(today) == BillStatus.OVERDUE,
            ))

        return CollectionEfficiencyReport(
            year=year,
            month=month,
            total_billed=round2(total_billed),
            total_collected=round2(total_collected),
            collection_efficiency=collection_efficiency(total_billed, total_collected),
            bills=lines,
        )

    @staticmethod
    async def overdue_bills_report(
        db: AsyncSession,
        days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> OverdueBillsReport:
        """Unpaid bills that fell due within the last ``days`` days and still have a balance"""
        today = today or get_utc_today()
        days = settings.REPORT_DEFAULT_DAYS if days is None else days

        bills = (await db.execute(
            select(Bill)
            .where(
                Bill.payment_status.in_(UNPAID_STATUSES),
                Bill.due_date < today,
                Bill.due_date >= today - timedelta(days=days),
            )
            .options(selectinload(Bill.customer), selectinload(Bill.payments))
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )).scalars().all()

        lines = []
        for bill in bills:
            paid = BillService.amount_paid(bill)
            amount_due = round2(_total(bill) - paid)
            if amount_due <= 0:
                continue
            customer = bill.customer
            lines.append(OverdueLine(
                bill_number=bill.bill_number,
                customer=CustomerBrief.model_validate(customer) if customer else None,
                phone=customer.phone if customer else None,
                email=customer.email if customer else None,
                due_date=bill.due_date,
                total_amount=_total(bill),
                amount_paid=paid,
                amount_due=amount_due,
                days_overdue=(today - bill.due_date).days,
            ))

        return OverdueBillsReport(
            days_overdue=days,
            total_overdue=round2(sum((line.amount_due for line in lines), Decimal("0"))),
            total_bills=len(lines),
            bills=lines,
        )
