from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from utility_billing.models.enums import CustomerStatus


class CustomerBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    water_meter_number: Optional[str] = None
    electricity_meter_number: Optional[str] = None
    connection_date: Optional[date] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=50)
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, min_length=1, max_length=20)
    status: Optional[CustomerStatus] = None
    water_meter_number: Optional[str] = None
    electricity_meter_number: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None


class CustomerResponse(CustomerBase):
    id: int
    customer_id: str
    status: CustomerStatus
    connection_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerBrief(BaseModel):
    id: int
    customer_id: str
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class CustomerStats(BaseModel):
    total_bills: int
    pending_bills: int
    total_paid: Decimal


class CustomerDetail(BaseModel):
    customer: CustomerResponse
    stats: CustomerStats
