"""Customer Service - registration, lookup, updates and CSV export"""

import csv
import io
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.core.exceptions import (
    Conflict,
    CustomerNotFound,
    DuplicateEmail,
    DuplicateMeterNumber,
    HasDependentRecords,
)
from utility_billing.core.logging import get_logger
from utility_billing.database import transaction
from utility_billing.models.billing import Bill, Payment
from utility_billing.models.customer import Customer
from utility_billing.models.enums import BillStatus, CustomerStatus, PaymentStatus
from utility_billing.schemas.customer import CustomerCreate, CustomerStats, CustomerUpdate
from utility_billing.services.identifiers import add_with_unique_identifier, generate_customer_id

logger = get_logger(__name__)

CSV_COLUMNS = [
    ("ID", "customer_id"),
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Email", "email"),
    ("Phone", "phone"),
    ("Address", "address"),
    ("City", "city"),
    ("Country", "country"),
    ("Postal Code", "postal_code"),
    ("Status", "status"),
]

METER_FIELDS = ("water_meter_number", "electricity_meter_number")


def _unique_conflict(exc: IntegrityError) -> Conflict:
    """Map a unique violation that slipped past the pre-checks (concurrent writer)"""
    detail = str(exc.orig)
    if "email" in detail:
        return DuplicateEmail("A customer with this email already exists")
    for field in METER_FIELDS:
        if field in detail:
            return DuplicateMeterNumber(
                f"{field.replace('_', ' ').capitalize()} is already assigned to another customer"
            )
    return Conflict("Customer conflicts with an existing record")


class CustomerService:
    """Service layer for Customer operations"""

    @staticmethod
    async def get_customer_by_id(db: AsyncSession, customer_pk: int) -> Optional[Customer]:
        return await db.get(Customer, customer_pk)

    @staticmethod
    async def get_customer_by_email(db: AsyncSession, email: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_customer_by_meter(
        db: AsyncSession,
        field: str,
        meter_number: str,
    ) -> Optional[Customer]:
        result = await db.execute(
            select(Customer).where(getattr(Customer, field) == meter_number)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _ensure_meters_free(
        db: AsyncSession,
        data: dict,
        customer_pk: Optional[int] = None,
    ) -> None:
        for field in METER_FIELDS:
            meter_number = data.get(field)
            if not meter_number:
                continue
            existing = await CustomerService.get_customer_by_meter(db, field, meter_number)
            if existing and existing.id != customer_pk:
                raise DuplicateMeterNumber(
                    f"{field.replace('_', ' ').capitalize()} is already assigned to another customer"
                )

    @staticmethod
    async def create_customer(db: AsyncSession, customer_in: CustomerCreate) -> Customer:
        """
        Register a customer with a generated customer_id. New customers
        start out active.

        Raises:
            DuplicateEmail: another customer already uses the email
            DuplicateMeterNumber: a meter number is already assigned
        """
        async with transaction(db):
            if await CustomerService.get_customer_by_email(db, customer_in.email):
                raise DuplicateEmail("A customer with this email already exists")

            data = customer_in.model_dump(exclude_none=True)
            data["email"] = customer_in.email.lower()
            await CustomerService._ensure_meters_free(db, data)

            customer = Customer(**data, status=CustomerStatus.ACTIVE)
            try:
                await add_with_unique_identifier(db, customer, "customer_id", generate_customer_id)
            except IntegrityError as exc:
                raise _unique_conflict(exc) from exc

        logger.info(
            "Customer created",
            extra={"customer_pk": customer.id, "customer_id": customer.customer_id},
        )
        return customer

    @staticmethod
    async def update_customer(
        db: AsyncSession,
        customer_pk: int,
        customer_update: CustomerUpdate,
    ) -> Customer:
        async with transaction(db):
            customer = await CustomerService.get_customer_by_id(db, customer_pk)
            if not customer:
                raise CustomerNotFound()

            update_data = customer_update.model_dump(exclude_unset=True)
            new_email = update_data.get("email")
            if new_email:
                update_data["email"] = new_email.lower()
                if update_data["email"] != customer.email:
                    existing = await CustomerService.get_customer_by_email(db, new_email)
                    if existing and existing.id != customer.id:
                        raise DuplicateEmail("A customer with this email already exists")
            await CustomerService._ensure_meters_free(db, update_data, customer_pk=customer.id)

            for field, value in update_data.items():
                setattr(customer, field, value)
            try:
                await db.flush()
            except IntegrityError as exc:
                raise _unique_conflict(exc) from exc

        logger.info("Customer updated", extra={"customer_pk": customer_pk})
        return customer

    @staticmethod
    async def count_dependents(db: AsyncSession, customer_pk: int) -> Tuple[int, int]:
        """Number of (bills, payments) referencing the customer"""
        bills = await db.scalar(select(func.count(Bill.id)).where(Bill.customer_id == customer_pk))
        payments = await db.scalar(
            select(func.count(Payment.id)).where(Payment.customer_id == customer_pk)
        )
        return bills or 0, payments or 0

    @staticmethod
    async def delete_customer(db: AsyncSession, customer_pk: int) -> None:
        """
        Raises:
            CustomerNotFound
            HasDependentRecords: the customer still has bills or payments
        """
        async with transaction(db):
            customer = await CustomerService.get_customer_by_id(db, customer_pk)
            if not customer:
                raise CustomerNotFound()

            bills, payments = await CustomerService.count_dependents(db, customer_pk)
            if bills or payments:
                raise HasDependentRecords(
                    "Cannot delete customer with associated bills or payments"
                )
            await db.delete(customer)

        logger.info("Customer deleted", extra={"customer_pk": customer_pk})

    @staticmethod
    async def list_customers(
        db: AsyncSession,
        search: Optional[str] = None,
        status: Optional[CustomerStatus] = None,
        owner_user_id: Optional[int] = None,
        skip: int = 0,
        limit: Optional[int] = 50,
    ) -> Tuple[List[Customer], int]:
        """Customers matching a free-text search, newest first"""
        filters = []
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.customer_id.ilike(pattern),
            ))
        if status:
            filters.append(Customer.status == status)
        if owner_user_id is not None:
            filters.append(Customer.user_id == owner_user_id)

        total = await db.scalar(select(func.count(Customer.id)).where(*filters))

        stmt = select(Customer).where(*filters).order_by(Customer.created_at.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def get_stats(db: AsyncSession, customer_pk: int) -> CustomerStats:
        """Bill count, pending bill count and total completed payments"""
        total_bills = await db.scalar(
            select(func.count(Bill.id)).where(Bill.customer_id == customer_pk)
        )
        pending_bills = await db.scalar(
            select(func.count(Bill.id)).where(
                Bill.customer_id == customer_pk,
                Bill.payment_status == BillStatus.PENDING,
            )
        )
        total_paid = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.customer_id == customer_pk,
                Payment.status == PaymentStatus.COMPLETED,
            )
        )
        return CustomerStats(
            total_bills=total_bills or 0,
            pending_bills=pending_bills or 0,
            total_paid=Decimal(total_paid or 0),
        )

    @staticmethod
    def export_csv(customers: Sequence[Customer]) -> str:
        """Render customers as CSV, one row per customer, all fields quoted"""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([header for header, _ in CSV_COLUMNS])
        for customer in customers:
            row = []
            for _, attr in CSV_COLUMNS:
                value = getattr(customer, attr)
                if isinstance(value, CustomerStatus):
                    value = value.value
                row.append("" if value is None else value)
            writer.writerow(row)
        return buffer.getvalue()
