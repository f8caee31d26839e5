"""Customer Model"""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import relationship

from utility_billing.models.base import BaseModel
from utility_billing.models.enums import CustomerStatus, enum_values
from utility_billing.utils.time import get_utc_today


class Customer(BaseModel):
    """
    Account holder that bills and payments belong to.
    customer_id is the human-readable number printed on statements.
    """
    __tablename__ = "customers"

    customer_id = Column(String(15), unique=True, nullable=False, index=True)

    # Contact
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(50), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)

    status = Column(
        ENUM(CustomerStatus, name="customer_status", values_callable=enum_values),
        default=CustomerStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Meters
    water_meter_number = Column(String(50), unique=True, nullable=True)
    electricity_meter_number = Column(String(50), unique=True, nullable=True)
    connection_date = Column(Date, default=get_utc_today, nullable=False)
    notes = Column(Text, nullable=True)

    # Portal account allowed to read this customer's records
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    user = relationship("User", back_populates="customers")
    bills = relationship("Bill", back_populates="customer", passive_deletes=True)
    payments = relationship("Payment", back_populates="customer", passive_deletes=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Customer {self.customer_id} - {self.full_name}>"
