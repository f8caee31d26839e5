"""Unit tests for report helpers."""

from datetime import date
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.models.billing import Payment
from utility_billing.schemas.report import AmountBucket
from utility_billing.services.report_service import ReportService, collection_efficiency, monthly_totals
from utility_billing.utils.time import month_bounds


def test_collection_efficiency_percentage():
    assert collection_efficiency(Decimal("200.00"), Decimal("150.00")) == Decimal("75.00")


def test_collection_efficiency_rounds_half_up():
    assert collection_efficiency(Decimal("3"), Decimal("1")) == Decimal("33.33")
    assert collection_efficiency(Decimal("8"), Decimal("1")) == Decimal("12.50")


def test_collection_efficiency_nothing_billed():
    assert collection_efficiency(Decimal("0"), Decimal("0")) == Decimal("0.00")


def test_monthly_totals_are_chronological():
    payments = [
        Payment(amount=Decimal("10.00"), payment_date=date(2025, 3, 5)),
        Payment(amount=Decimal("5.50"), payment_date=date(2025, 1, 31)),
        Payment(amount=Decimal("4.50"), payment_date=date(2025, 1, 2)),
    ]
    totals = monthly_totals(payments)
    assert [(t.month, t.total) for t in totals] == [
        ("2025-01", Decimal("10.00")),
        ("2025-03", Decimal("10.00")),
    ]


def test_month_bounds():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2025, 12, 31))
    with pytest.raises(ValueError):
        month_bounds(2025, 13)


def _compiled(clause):
    compiled = clause.compile(dialect=postgresql.dialect())
    return str(compiled), list(compiled.params.values())


@pytest.mark.asyncio
async def test_dashboard_pending_and_overdue_buckets_do_not_overlap():
    today = date(2025, 7, 10)
    db = AsyncMock(spec=AsyncSession)
    db.scalar.return_value = 0
    result = MagicMock()
    result.scalars.return_value.all.return_value = []
    db.execute.return_value = result

    with patch(
        "utility_billing.services.report_service.ReportService._bucket", new_callable=AsyncMock
    ) as mock_bucket:
        mock_bucket.return_value = AmountBucket(count=0, amount=Decimal("0"))
        dashboard = await ReportService.get_dashboard(db, today=today)

    assert dashboard.metrics.pending_bills.count == 0
    pending_clause, overdue_clause = (call.args[1] for call in mock_bucket.await_args_list)

    pending_sql, pending_params = _compiled(pending_clause)
    assert "bills.payment_status = " in pending_sql
    assert "bills.due_date >= " in pending_sql
    assert today in pending_params

    # A pending bill due before today only matches the overdue side
    overdue_sql, overdue_params = _compiled(overdue_clause)
    assert "bills.due_date < " in overdue_sql
    assert today in overdue_params
