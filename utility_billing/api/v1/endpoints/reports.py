"""Dashboard and Report Endpoints (staff and admin)"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.api import deps
from utility_billing.core.permissions import Principal
from utility_billing.models.enums import BillType
from utility_billing.schemas.report import (
    CollectionEfficiencyReport,
    CustomerStatement,
    Dashboard,
    FinancialReport,
    OverdueBillsReport,
)
from utility_billing.schemas.responses import SuccessResponse
from utility_billing.services.report_service import ReportService
from utility_billing.utils.time import get_utc_today

dashboard_router = APIRouter()
router = APIRouter()


@dashboard_router.get("", response_model=SuccessResponse[Dashboard])
async def get_dashboard(
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_reports),
) -> SuccessResponse[Dashboard]:
    """Headline metrics, recent payments and bills coming due"""
    return SuccessResponse(data=await ReportService.get_dashboard(db))


@router.get("/financial", response_model=SuccessResponse[FinancialReport])
async def financial_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    bill_type: Optional[BillType] = Query(None),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_reports),
) -> SuccessResponse[FinancialReport]:
    report = await ReportService.financial_report(
        db, start_date=start_date, end_date=end_date, bill_type=bill_type
    )
    return SuccessResponse(data=report)


@router.get("/customer-statement/{customer_id}", response_model=SuccessResponse[CustomerStatement])
async def customer_statement(
    customer_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_reports),
) -> SuccessResponse[CustomerStatement]:
    statement = await ReportService.customer_statement(
        db, customer_id, start_date=start_date, end_date=end_date
    )
    return SuccessResponse(data=statement)


@router.get("/collection-efficiency", response_model=SuccessResponse[CollectionEfficiencyReport])
async def collection_efficiency(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_reports),
) -> SuccessResponse[CollectionEfficiencyReport]:
    """Defaults to the current month"""
    today = get_utc_today()
    report = await ReportService.collection_efficiency_report(
        db, year=year or today.year, month=month or today.month
    )
    return SuccessResponse(data=report)


@router.get("/overdue-bills", response_model=SuccessResponse[OverdueBillsReport])
async def overdue_bills(
    days: Optional[int] = Query(None, ge=1, le=3650, description="Look-back window in days"),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_reports),
) -> SuccessResponse[OverdueBillsReport]:
    return SuccessResponse(data=await ReportService.overdue_bills_report(db, days=days))
