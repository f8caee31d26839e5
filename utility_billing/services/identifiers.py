"""Human-readable identifiers for bills, payments and customers.

The random suffixes give no uniqueness guarantee, so inserts go through
``add_with_unique_identifier`` which rerolls on a unique-constraint hit.
"""

import secrets
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.config import settings
from utility_billing.core.exceptions import IdentifierCollision
from utility_billing.core.logging import get_logger
from utility_billing.models.enums import BillType
from utility_billing.utils.time import get_utc_now

logger = get_logger(__name__)

T = TypeVar("T")

BILL_PREFIXES = {
    BillType.WATER: "WTR",
    BillType.ELECTRICITY: "ELC",
    BillType.COMBINED: "BL",
}
PAYMENT_PREFIX = "PAY"
CUSTOMER_PREFIX = "CUST"
CUSTOMER_ID_LENGTH = 15


def _random_digits(width: int) -> int:
    """Random number with exactly ``width`` digits (no leading zero)"""
    low = 10 ** (width - 1)
    return low + secrets.randbelow(9 * low)


def _period(now: Optional[datetime]) -> str:
    now = now or get_utc_now()
    return f"{now:%y%m}"


def generate_bill_number(bill_type: BillType, now: Optional[datetime] = None) -> str:
    """WTR/ELC/BL + YYMM + 4 random digits, e.g. WTR25061234"""
    prefix = BILL_PREFIXES[BillType(bill_type)]
    return f"{prefix}{_period(now)}{_random_digits(4)}"


def generate_payment_number(now: Optional[datetime] = None) -> str:
    """PAY + YYMM + 4 random digits"""
    return f"{PAYMENT_PREFIX}{_period(now)}{_random_digits(4)}"


def generate_customer_id(now: Optional[datetime] = None) -> str:
    """CUST + last 6 digits of the epoch-ms timestamp + 5 random digits"""
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))[-6:]
    return f"{CUSTOMER_PREFIX}{millis}{_random_digits(5)}"[:CUSTOMER_ID_LENGTH]


def _is_collision_on(exc: IntegrityError, field: str) -> bool:
    return field in str(exc.orig)


async def add_with_unique_identifier(
    db: AsyncSession,
    instance: T,
    field: str,
    generate: Callable[[], str],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Insert ``instance`` with a freshly generated value for ``field``.

    Each attempt is flushed inside a savepoint, so a collision only rolls
    back that attempt and the caller's transaction keeps its locks.

    Raises:
        IdentifierCollision: every attempt hit the unique constraint
        IntegrityError: any other constraint violation
    """
    attempts = max_attempts or settings.IDENTIFIER_MAX_ATTEMPTS
    table = getattr(instance, "__tablename__", type(instance).__name__)

    for attempt in range(1, attempts + 1):
        value = generate()
        setattr(instance, field, value)
        try:
            async with db.begin_nested():
                db.add(instance)
                await db.flush()
            return instance
        except IntegrityError as exc:
            if not _is_collision_on(exc, field):
                raise
            logger.warning(
                "Identifier collision, rerolling",
                extra={"table": table, "field": field, "value": value, "attempt": attempt},
            )

    logger.error(
        "Identifier generation exhausted",
        extra={"table": table, "field": field, "attempts": attempts},
    )
    raise IdentifierCollision(f"Could not allocate a unique {field} after {attempts} attempts")
