"""Customer Endpoints"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from utility_billing.api import deps
from utility_billing.core.exceptions import CustomerNotFound
from utility_billing.core.permissions import Principal, authorize_read, read_scope
from utility_billing.models.enums import CustomerStatus
from utility_billing.schemas.customer import (
    CustomerCreate,
    CustomerDetail,
    CustomerResponse,
    CustomerUpdate,
)
from utility_billing.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from utility_billing.services.customer_service import CustomerService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[CustomerResponse])
async def list_customers(
    search: Optional[str] = Query(None, description="Name, email, phone or customer ID"),
    customer_status: Optional[CustomerStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> PaginatedResponse[CustomerResponse]:
    """Plain users only see customers linked to their account"""
    customers, total = await CustomerService.list_customers(
        db,
        search=search,
        status=customer_status,
        owner_user_id=read_scope(principal),
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return PaginatedResponse(
        data=[CustomerResponse.model_validate(c) for c in customers],
        meta=PaginationMeta.build(page, page_size, total),
    )


@router.post("", response_model=SuccessResponse[CustomerResponse], status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_in: CustomerCreate,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[CustomerResponse]:
    customer = await CustomerService.create_customer(db, customer_in)
    return SuccessResponse(
        data=CustomerResponse.model_validate(customer),
        message="Customer created successfully",
    )


@router.get("/export/csv")
async def export_customers_csv(
    search: Optional[str] = Query(None),
    customer_status: Optional[CustomerStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> Response:
    """Download all matching customers as CSV"""
    customers, _ = await CustomerService.list_customers(
        db, search=search, status=customer_status, limit=None
    )
    return Response(
        content=CustomerService.export_csv(customers),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="customers.csv"'},
    )


@router.get("/{customer_id}", response_model=SuccessResponse[CustomerDetail])
async def get_customer(
    customer_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_principal),
) -> SuccessResponse[CustomerDetail]:
    """Customer record with bill and payment totals"""
    customer = await CustomerService.get_customer_by_id(db, customer_id)
    authorize_read(
        principal,
        customer.user_id if customer else None,
        found=customer is not None,
        not_found=CustomerNotFound(),
    )
    stats = await CustomerService.get_stats(db, customer_id)
    return SuccessResponse(
        data=CustomerDetail(customer=CustomerResponse.model_validate(customer), stats=stats)
    )


@router.patch("/{customer_id}", response_model=SuccessResponse[CustomerResponse])
async def update_customer(
    customer_id: int,
    customer_update: CustomerUpdate,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> SuccessResponse[CustomerResponse]:
    customer = await CustomerService.update_customer(db, customer_id, customer_update)
    return SuccessResponse(
        data=CustomerResponse.model_validate(customer),
        message="Customer updated successfully",
    )


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: Principal = Depends(deps.require_staff),
) -> None:
    """Refused while the customer still has bills or payments"""
    await CustomerService.delete_customer(db, customer_id)
