import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from rental_engine.database import Base
from rental_engine.utils.timezone import utcnow


class RentalStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return {
            "pending": "Pending",
            "active": "Active",
            "completed": "Completed",
            "cancelled": "Cancelled",
        }.get(self.value, self.value)

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Both states hold the asset for availability purposes.
OUTSTANDING_STATUSES = (RentalStatus.PENDING, RentalStatus.ACTIVE)
TERMINAL_STATUSES = (RentalStatus.COMPLETED, RentalStatus.CANCELLED)


class RatePeriodType(str, enum.Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    OTHER = "other"


def effective_end_date(rental: "Rental") -> datetime:
    return rental.actual_return_date or rental.estimated_return_date


def duration_in_days(rental: "Rental") -> int:
    """Whole days between start and the effective end date."""
    return (effective_end_date(rental) - rental.start_date).days


def is_overdue(rental: "Rental", now: Optional[datetime] = None) -> bool:
    if rental.status != RentalStatus.ACTIVE.value or rental.actual_return_date is not None:
        return False
    return (now or utcnow()) > rental.estimated_return_date


class Rental(Base):
    __tablename__ = "rentals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    asset_id = Column(String(36), ForeignKey("assets.id"), nullable=False, index=True)

    # Window: [start_date, estimated_return_date)
    start_date = Column(DateTime, nullable=False, index=True)
    estimated_return_date = Column(DateTime, nullable=False, index=True)
    actual_return_date = Column(DateTime, nullable=True)

    status = Column(String(20), nullable=False, default=RentalStatus.PENDING.value, index=True)

    # Pricing
    rate = Column(Numeric(12, 2), nullable=False)
    rate_period_type = Column(String(20), nullable=False, default=RatePeriodType.DAILY.value)
    deposit = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Ledger
    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    tax = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    paid_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    pending_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    deposit_returned = Column(Boolean, nullable=False, default=False)

    pickup_location = Column(String(255), nullable=True)
    return_location = Column(String(255), nullable=True)

    # Inspection (record-keeping only)
    initial_hours = Column(Numeric(12, 2), nullable=True)
    final_hours = Column(Numeric(12, 2), nullable=True)
    initial_mileage = Column(Numeric(12, 2), nullable=True)
    final_mileage = Column(Numeric(12, 2), nullable=True)
    initial_condition = Column(Text, nullable=True)
    final_condition = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    asset = relationship("Asset", back_populates="rentals")
    customer = relationship("Customer", back_populates="rentals")

    __mapper_args__ = {"version_id_col": version}

    @property
    def effective_end_date(self) -> datetime:
        return effective_end_date(self)

    @property
    def duration_in_days(self) -> int:
        return duration_in_days(self)

    @property
    def is_overdue(self) -> bool:
        return is_overdue(self)

    @property
    def is_outstanding(self) -> bool:
        return self.status in {s.value for s in OUTSTANDING_STATUSES}
