"""Bill Lifecycle Service

Creates bills from meter readings and owns the payment_status state
machine. Status is derived from the sum of completed payments by
``recompute_status``, which payment operations call inside their own
transaction.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, extract, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from utility_billing.config import settings
from utility_billing.core.exceptions import (
    BillNotFound,
    CustomerNotFound,
    HasDependentPayments,
    InvalidStatusTransition,
    ValidationError,
)
from utility_billing.core.logging import get_logger
from utility_billing.database import transaction
from utility_billing.models.billing import Bill, Payment
from utility_billing.models.customer import Customer
from utility_billing.models.enums import BillStatus, BillType, CustomerStatus, PaymentStatus
from utility_billing.schemas.billing import BillCreate
from utility_billing.services.calculator import calculate_charges, round2
from utility_billing.services.customer_service import CustomerService
from utility_billing.services.identifiers import add_with_unique_identifier, generate_bill_number
from utility_billing.utils.time import get_utc_now, get_utc_today

logger = get_logger(__name__)

# Manual overrides staff may apply; PAID and PARTIALLY_PAID only come from payments
ALLOWED_OVERRIDES: Dict[BillStatus, frozenset] = {
    BillStatus.PENDING: frozenset({BillStatus.OVERDUE, BillStatus.CANCELLED}),
    BillStatus.PARTIALLY_PAID: frozenset({BillStatus.OVERDUE}),
    BillStatus.OVERDUE: frozenset({BillStatus.CANCELLED}),
    BillStatus.PAID: frozenset(),
    BillStatus.CANCELLED: frozenset(),
}


class BillService:
    """Service layer for Bill operations"""

    # Lookups

    @staticmethod
    async def get_bill_by_id(
        db: AsyncSession,
        bill_id: int,
        with_relations: bool = False,
    ) -> Optional[Bill]:
        stmt = select(Bill).where(Bill.id == bill_id)
        if with_relations:
            stmt = stmt.options(selectinload(Bill.customer), selectinload(Bill.payments))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_bill_for_update(db: AsyncSession, bill_id: int) -> Optional[Bill]:
        """Load the bill and hold its row lock until the transaction ends"""
        result = await db.execute(
            select(Bill).where(Bill.id == bill_id).with_for_update()
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def sum_completed_payments(db: AsyncSession, bill_id: int) -> Decimal:
        total = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.bill_id == bill_id,
                Payment.status == PaymentStatus.COMPLETED,
            )
        )
        return round2(total or 0)

    @staticmethod
    async def count_payments(db: AsyncSession, bill_id: int) -> int:
        """Payments of any status referencing the bill"""
        count = await db.scalar(select(func.count(Payment.id)).where(Payment.bill_id == bill_id))
        return count or 0

    # Status derivation

    @staticmethod
    def derive_status(
        paid_total: Decimal,
        total_amount: Optional[Decimal],
        current: BillStatus = BillStatus.PENDING,
    ) -> BillStatus:
        """
        Status implied by the completed-payment sum.

        Cancelled bills stay cancelled. No payments means PENDING, even
        for a zero-total bill.
        """
        if current == BillStatus.CANCELLED:
            return BillStatus.CANCELLED
        if paid_total <= 0:
            return BillStatus.PENDING
        if total_amount is not None and paid_total >= total_amount:
            return BillStatus.PAID
        return BillStatus.PARTIALLY_PAID

    @staticmethod
    async def recompute_status(db: AsyncSession, bill_id: int) -> Bill:
        """
        Re-derive payment_status from completed payments.

        Must run inside the caller's transaction; locks the bill row so
        concurrent payment postings serialize on it. Does not commit.
        """
        await db.flush()
        bill = await BillService.get_bill_for_update(db, bill_id)
        if not bill:
            raise BillNotFound()

        paid_total = await BillService.sum_completed_payments(db, bill_id)
        previous = BillStatus(bill.payment_status)
        new_status = BillService.derive_status(paid_total, bill.total_amount, previous)

        if new_status != previous:
            bill.payment_status = new_status
            logger.info(
                "Bill status changed",
                extra={
                    "bill_id": bill_id,
                    "from_status": previous.value,
                    "to_status": new_status.value,
                    "paid_total": str(paid_total),
                },
            )
        if new_status == BillStatus.PAID:
            if bill.paid_at is None:
                bill.paid_at = get_utc_now()
        else:
            bill.paid_at = None

        await db.flush()
        return bill

    # Mutations

    @staticmethod
    def _validate_new_bill(bill_in: BillCreate, customer: Customer) -> None:
        errors: Dict[str, str] = {}
        if customer.status != CustomerStatus.ACTIVE:
            errors["customer_id"] = "Customer is not active"
        if bill_in.current_reading is None:
            errors["current_reading"] = "Current reading is required"
        elif (
            not settings.ALLOW_NEGATIVE_CONSUMPTION
            and bill_in.previous_reading is not None
            and bill_in.current_reading < bill_in.previous_reading
        ):
            errors["current_reading"] = "Current reading cannot be lower than previous reading"
        if bill_in.rate is None:
            errors["rate"] = "Rate is required"
        if bill_in.due_date is None:
            errors["due_date"] = "Due date is required"
        if errors:
            raise ValidationError.for_fields(errors)

    @staticmethod
    async def create_bill(
        db: AsyncSession,
        bill_in: BillCreate,
        created_by: Optional[int] = None,
    ) -> Bill:
        """
        Create a pending bill with derived charges and a generated number.

        Raises:
            CustomerNotFound
            ValidationError: inactive customer, missing fields or a reading
                lower than the previous one
        """
        async with transaction(db):
            customer = await CustomerService.get_customer_by_id(db, bill_in.customer_id)
            if not customer:
                raise CustomerNotFound()
            BillService._validate_new_bill(bill_in, customer)

            tax_rate = bill_in.tax_rate
            if tax_rate is None:
                tax_rate = settings.DEFAULT_TAX_RATE_PERCENT
            previous = bill_in.previous_reading if bill_in.previous_reading is not None else Decimal("0")
            charges = calculate_charges(previous, bill_in.current_reading, bill_in.rate, tax_rate)

            bill = Bill(
                customer_id=customer.id,
                bill_type=bill_in.bill_type,
                previous_reading=previous,
                current_reading=bill_in.current_reading,
                consumption=charges.consumption,
                rate=bill_in.rate,
                tax_rate=tax_rate,
                amount=charges.amount,
                tax_amount=charges.tax_amount,
                total_amount=charges.total_amount,
                due_date=bill_in.due_date,
                payment_status=BillStatus.PENDING,
                notes=bill_in.notes,
                created_by=created_by,
            )
            await add_with_unique_identifier(
                db, bill, "bill_number", lambda: generate_bill_number(bill_in.bill_type)
            )

        logger.info(
            "Bill created",
            extra={
                "bill_id": bill.id,
                "bill_number": bill.bill_number,
                "customer_pk": bill.customer_id,
                "total_amount": str(bill.total_amount),
            },
        )
        return bill

    @staticmethod
    async def update_status(db: AsyncSession, bill_id: int, new_status: BillStatus) -> Bill:
        """
        Staff override of payment_status.

        Raises:
            BillNotFound
            InvalidStatusTransition: target not reachable by override
            HasDependentPayments: cancelling a bill that has payments
        """
        new_status = BillStatus(new_status)
        async with transaction(db):
            bill = await BillService.get_bill_for_update(db, bill_id)
            if not bill:
                raise BillNotFound()

            current = BillStatus(bill.payment_status)
            if new_status == current:
                return bill
            if new_status not in ALLOWED_OVERRIDES[current]:
                raise InvalidStatusTransition(
                    f"Cannot change bill status from {current.value} to {new_status.value}"
                )
            if new_status == BillStatus.CANCELLED and await BillService.count_payments(db, bill_id):
                raise HasDependentPayments("Cannot cancel a bill with associated payments")

            bill.payment_status = new_status

        logger.info(
            "Bill status overridden",
            extra={"bill_id": bill_id, "from_status": current.value, "to_status": new_status.value},
        )
        return bill

    @staticmethod
    async def delete_bill(db: AsyncSession, bill_id: int) -> None:
        """
        Raises:
            BillNotFound
            HasDependentPayments: any payment, whatever its status, references the bill
        """
        async with transaction(db):
            bill = await BillService.get_bill_for_update(db, bill_id)
            if not bill:
                raise BillNotFound()
            if await BillService.count_payments(db, bill_id):
                raise HasDependentPayments("Cannot delete bill with associated payments")
            await db.delete(bill)

        logger.info("Bill deleted", extra={"bill_id": bill_id})

    # Queries

    @staticmethod
    async def list_bills(
        db: AsyncSession,
        status: Optional[BillStatus] = None,
        bill_type: Optional[BillType] = None,
        customer_pk: Optional[int] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
        owner_user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
        today: Optional[date] = None,
    ) -> Tuple[List[Bill], int]:
        """
        Bills filtered by status, type, customer and due month.

        Filtering by OVERDUE also matches unpaid bills whose due date has
        passed, mirroring ``Bill.effective_status``.
        """
        today = today or get_utc_today()
        filters = []
        if status == BillStatus.OVERDUE:
            filters.append(or_(
                Bill.payment_status == BillStatus.OVERDUE,
                and_(
                    Bill.payment_status.in_([BillStatus.PENDING, BillStatus.PARTIALLY_PAID]),
                    Bill.due_date < today,
                ),
            ))
        elif status:
            filters.append(Bill.payment_status == status)
        if bill_type:
            filters.append(Bill.bill_type == bill_type)
        if customer_pk is not None:
            filters.append(Bill.customer_id == customer_pk)
        if year is not None:
            filters.append(extract("year", Bill.due_date) == year)
        if month is not None:
            filters.append(extract("month", Bill.due_date) == month)

        base = select(Bill)
        count_stmt = select(func.count(Bill.id))
        if owner_user_id is not None:
            base = base.join(Customer, Bill.customer_id == Customer.id)
            count_stmt = count_stmt.join(Customer, Bill.customer_id == Customer.id)
            filters.append(Customer.user_id == owner_user_id)

        total = await db.scalar(count_stmt.where(*filters))
        result = await db.execute(
            base.where(*filters)
            .options(selectinload(Bill.customer))
            .order_by(Bill.due_date.desc(), Bill.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    def amount_paid(bill: Bill) -> Decimal:
        """Completed-payment total of a bill loaded with its payments"""
        return round2(sum(
            (Decimal(p.amount) for p in bill.payments if p.status == PaymentStatus.COMPLETED),
            Decimal("0"),
        ))

    @staticmethod
    def balance(bill: Bill, amount_paid: Decimal) -> Optional[Decimal]:
        if bill.total_amount is None:
            return None
        return round2(Decimal(bill.total_amount) - amount_paid)
