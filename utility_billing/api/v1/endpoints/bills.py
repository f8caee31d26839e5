"""Bill Endpoints"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.api import deps
from utility_billing.core.exceptions import BillNotFound
from utility_billing.core.permissions import Principal, authorize_read, read_scope
from utility_billing.models.enums import BillStatus, BillType
from utility_billing.models.user import User
from utility_billing.schemas.billing import (
    BillCreate,
    BillDetail,
    BillResponse,
    BillStatusUpdate,
    PaymentResponse,
)
from utility_billing.schemas.customer import CustomerBrief
from utility_billing.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from utility_billing.services.bill_service import BillService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[BillResponse])
async def list_bills(
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    bill_type: Optional[BillType] = Query(None),
    customer_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Due-date year"),
    month: Optional[int] = Query(None, ge=1, le=12, description="Due-date month"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> PaginatedResponse[BillResponse]:
    bills, total = await BillService.list_bills(
        db,
        status=bill_status,
        bill_type=bill_type,
        customer_pk=customer_id,
        year=year,
        month=month,
        owner_user_id=read_scope(principal),
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return PaginatedResponse(
        data=[BillResponse.model_validate(b) for b in bills],
        meta=PaginationMeta.build(page, page_size, total),
    )


@router.post("", response_model=SuccessResponse[BillResponse], status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_in: BillCreate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[BillResponse]:
    """
    Generate a bill from meter readings. Consumption, subtotal, tax and
    total are derived; the tax rate falls back to the configured default.
    """
    bill = await BillService.create_bill(db, bill_in, created_by=current_user.id)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill created successfully")


@router.get("/{bill_id}", response_model=SuccessResponse[BillDetail])
async def get_bill(
    bill_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> SuccessResponse[BillDetail]:
    bill = await BillService.get_bill_by_id(db, bill_id, with_relations=True)
    authorize_read(
        principal,
        bill.customer.user_id if bill else None,
        found=bill is not None,
        not_found=BillNotFound(),
    )
    amount_paid = BillService.amount_paid(bill)
    return SuccessResponse(
        data=BillDetail(
            bill=BillResponse.model_validate(bill),
            customer=CustomerBrief.model_validate(bill.customer),
            payments=[PaymentResponse.model_validate(p) for p in bill.payments],
            amount_paid=amount_paid,
            balance=BillService.balance(bill, amount_paid),
            effective_status=bill.effective_status(),
        )
    )


@router.post("/{bill_id}/status", response_model=SuccessResponse[BillResponse])
async def update_bill_status(
    bill_id: int,
    status_in: BillStatusUpdate,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[BillResponse]:
    """Manual override to overdue or cancelled"""
    bill = await BillService.update_status(db, bill_id, status_in.status)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill status updated")


@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bill(
    bill_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> None:
    """Refused while any payment references the bill"""
    await BillService.delete_bill(db, bill_id)
