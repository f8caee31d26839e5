"""Payment Ledger Service

Records payments against bills and reverses them by void or refund.
Every mutation locks the bill row, changes the payment and re-derives the
bill status in a single transaction.
"""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from utility_billing.core.exceptions import (
    AlreadyVoided,
    BillNotFound,
    Conflict,
    InvalidStatusTransition,
    PaymentNotFound,
    ValidationError,
)
from utility_billing.core.logging import get_logger
from utility_billing.database import transaction
from utility_billing.models.billing import Payment
from utility_billing.models.customer import Customer
from utility_billing.models.enums import BillStatus, PaymentStatus
from utility_billing.schemas.billing import PaymentCreate
from utility_billing.services.bill_service import BillService
from utility_billing.services.calculator import round2
from utility_billing.services.identifiers import add_with_unique_identifier, generate_payment_number
from utility_billing.utils.time import get_utc_now

logger = get_logger(__name__)


class PaymentService:
    """Service layer for Payment operations"""

    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: int) -> Optional[Payment]:
        result = await db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .options(selectinload(Payment.customer), selectinload(Payment.bill))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_payment_for_update(db: AsyncSession, payment_id: int) -> Optional[Payment]:
        result = await db.execute(
            select(Payment).where(Payment.id == payment_id).with_for_update()
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        payment_in: PaymentCreate,
        created_by: Optional[int] = None,
    ) -> Payment:
        """
        Post a completed payment against a bill and re-derive its status.

        Raises:
            BillNotFound
            Conflict: the bill is cancelled
            ValidationError: the amount rounds to zero
        """
        amount = round2(payment_in.amount)
        if amount <= 0:
            raise ValidationError.for_fields({"amount": "Amount must be at least 0.01"})

        async with transaction(db):
            bill = await BillService.get_bill_for_update(db, payment_in.bill_id)
            if not bill:
                raise BillNotFound()
            if bill.payment_status == BillStatus.CANCELLED:
                raise Conflict("Cannot record a payment against a cancelled bill")

            payment = Payment(
                customer_id=bill.customer_id,
                bill_id=bill.id,
                amount=amount,
                payment_date=payment_in.payment_date,
                payment_method=payment_in.payment_method,
                transaction_id=payment_in.transaction_id,
                reference_number=payment_in.reference_number,
                status=PaymentStatus.COMPLETED,
                notes=payment_in.notes,
                created_by=created_by,
            )
            await add_with_unique_identifier(db, payment, "payment_number", generate_payment_number)
            await BillService.recompute_status(db, bill.id)

        logger.info(
            "Payment recorded",
            extra={
                "payment_id": payment.id,
                "payment_number": payment.payment_number,
                "bill_id": payment.bill_id,
                "amount": str(payment.amount),
                "method": payment.payment_method.value,
            },
        )
        return payment

    @staticmethod
    async def _reverse(
        db: AsyncSession,
        payment_id: int,
        target: PaymentStatus,
    ) -> Payment:
        async with transaction(db):
            payment = await PaymentService.get_payment_for_update(db, payment_id)
            if not payment:
                raise PaymentNotFound()

            current = PaymentStatus(payment.status)
            if target == PaymentStatus.VOID:
                if current == PaymentStatus.VOID:
                    raise AlreadyVoided()
                payment.voided_at = get_utc_now()
            elif current != PaymentStatus.COMPLETED:
                raise InvalidStatusTransition(
                    f"Only completed payments can be refunded, payment is {current.value}"
                )

            payment.status = target
            if payment.bill_id is not None:
                await BillService.recompute_status(db, payment.bill_id)

        logger.info(
            "Payment reversed",
            extra={
                "payment_id": payment_id,
                "from_status": current.value,
                "to_status": target.value,
                "bill_id": payment.bill_id,
            },
        )
        return payment

    @staticmethod
    async def void_payment(db: AsyncSession, payment_id: int) -> Payment:
        """
        Mark a payment void and re-derive its bill. The row is kept.

        Raises:
            PaymentNotFound
            AlreadyVoided
        """
        return await PaymentService._reverse(db, payment_id, PaymentStatus.VOID)

    @staticmethod
    async def refund_payment(db: AsyncSession, payment_id: int) -> Payment:
        """
        Mark a completed payment refunded and re-derive its bill.

        Raises:
            PaymentNotFound
            InvalidStatusTransition: payment is not completed
        """
        return await PaymentService._reverse(db, payment_id, PaymentStatus.REFUNDED)

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[PaymentStatus] = None,
        bill_id: Optional[int] = None,
        customer_pk: Optional[int] = None,
        owner_user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Payment], int]:
        """Payments newest first, filtered by date range, status, bill and customer"""
        filters = []
        if start_date:
            filters.append(Payment.payment_date >= start_date)
        if end_date:
            filters.append(Payment.payment_date <= end_date)
        if status:
            filters.append(Payment.status == status)
        if bill_id is not None:
            filters.append(Payment.bill_id == bill_id)
        if customer_pk is not None:
            filters.append(Payment.customer_id == customer_pk)

        base = select(Payment)
        count_stmt = select(func.count(Payment.id))
        if owner_user_id is not None:
            base = base.join(Customer, Payment.customer_id == Customer.id)
            count_stmt = count_stmt.join(Customer, Payment.customer_id == Customer.id)
            filters.append(Customer.user_id == owner_user_id)

        total = await db.scalar(count_stmt.where(*filters))
        result = await db.execute(
            base.where(*filters)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

