"""Payment Endpoints"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.api import deps
from utility_billing.core.exceptions import PaymentNotFound
from utility_billing.core.permissions import Principal, authorize_read, read_scope
from utility_billing.models.enums import PaymentStatus
from utility_billing.models.user import User
from utility_billing.schemas.billing import PaymentCreate, PaymentResponse
from utility_billing.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from utility_billing.services.payment_service import PaymentService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PaymentResponse])
async def list_payments(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    bill_id: Optional[int] = Query(None),
    customer_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> PaginatedResponse[PaymentResponse]:
    payments, total = await PaymentService.list_payments(
        db,
        start_date=start_date,
        end_date=end_date,
        status=payment_status,
        bill_id=bill_id,
        customer_pk=customer_id,
        owner_user_id=read_scope(principal),
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return PaginatedResponse(
        data=[PaymentResponse.model_validate(p) for p in payments],
        meta=PaginationMeta.build(page, page_size, total),
    )


@router.post("", response_model=SuccessResponse[PaymentResponse], status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_in: PaymentCreate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[PaymentResponse]:
    """Record a completed payment; the bill status is re-derived in the same transaction"""
    payment = await PaymentService.record_payment(db, payment_in, created_by=current_user.id)
    return SuccessResponse(
        data=PaymentResponse.model_validate(payment),
        message="Payment recorded successfully",
    )


@router.get("/{payment_id}", response_model=SuccessResponse[PaymentResponse])
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> SuccessResponse[PaymentResponse]:
    payment = await PaymentService.get_payment(db, payment_id)
    authorize_read(
        principal,
        payment.customer.user_id if payment else None,
        found=payment is not None,
        not_found=PaymentNotFound(),
    )
    return SuccessResponse(data=PaymentResponse.model_validate(payment))


@router.post("/{payment_id}/void", response_model=SuccessResponse[PaymentResponse])
async def void_payment(
    payment_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[PaymentResponse]:
    payment = await PaymentService.void_payment(db, payment_id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment voided")


@router.post("/{payment_id}/refund", response_model=SuccessResponse[PaymentResponse])
async def refund_payment(
    payment_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[PaymentResponse]:
    """Only completed payments can be refunded"""
    payment = await PaymentService.refund_payment(db, payment_id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment refunded")
