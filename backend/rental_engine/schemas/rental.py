from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from rental_engine.models.rental import PaymentMethod, RatePeriodType
from rental_engine.utils.timezone import as_utc_naive


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    normalized = v.strip()
    return normalized or None


def _coerce_datetime(v: Any) -> Any:
    # Date-only strings ("2026-03-01") mean midnight UTC
    if isinstance(v, (str, date)):
        return as_utc_naive(v)
    return v


class CreateRentalRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer_id: str
    asset_id: str
    start_date: datetime
    estimated_return_date: datetime
    rate: Optional[Decimal] = None
    rate_period_type: RatePeriodType = RatePeriodType.DAILY
    deposit: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.CASH
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    initial_hours: Optional[Decimal] = None
    initial_mileage: Optional[Decimal] = None
    initial_condition: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customer_id", "asset_id")
    @classmethod
    def validate_ids(cls, v: str) -> str:
        normalized = (v or "").strip()
        if not normalized:
            raise ValueError("must not be empty")
        return normalized

    @field_validator("start_date", "estimated_return_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator("rate_period_type", "payment_method", mode="before")
    @classmethod
    def normalize_enums(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("pickup_location", "return_location", "initial_condition", "notes")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class UpdateRentalRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start_date: Optional[datetime] = None
    estimated_return_date: Optional[datetime] = None
    rate: Optional[Decimal] = None
    rate_period_type: Optional[RatePeriodType] = None
    deposit: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_date", "estimated_return_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator("rate_period_type", "payment_method", mode="before")
    @classmethod
    def normalize_enums(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class CompleteRentalRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    return_date: Optional[datetime] = None
    final_hours: Optional[Decimal] = None
    final_mileage: Optional[Decimal] = None
    final_condition: Optional[str] = None
    deposit_returned: bool = False
    notes: Optional[str] = None

    @field_validator("return_date", mode="before")
    @classmethod
    def parse_return_date(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator("final_condition", "notes")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class CancelRentalRequest(BaseModel):
    reason: str = ""
    return_deposit: bool = False


class PaymentRequest(BaseModel):
    amount: Decimal


class RentalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    asset_id: str
    start_date: datetime
    estimated_return_date: datetime
    actual_return_date: Optional[datetime] = None
    status: str
    rate: Decimal
    rate_period_type: str
    deposit: Decimal
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    payment_method: str
    deposit_returned: bool
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    initial_hours: Optional[Decimal] = None
    final_hours: Optional[Decimal] = None
    initial_mileage: Optional[Decimal] = None
    final_mileage: Optional[Decimal] = None
    initial_condition: Optional[str] = None
    final_condition: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    duration_in_days: int
    is_overdue: bool
    created_at: datetime
    updated_at: datetime


class AssetSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: str
    asset_type: str
    status: str


class CustomerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class RentalDetailResponse(RentalResponse):
    asset: Optional[AssetSummary] = None
    customer: Optional[CustomerSummary] = None


class PagedRentalResponse(BaseModel):
    items: List[RentalDetailResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool = False
    has_previous: bool = False


class RentalAuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rental_id: str
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    reason: Optional[str] = None
    changed_by: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime


class ReminderRunResponse(BaseModel):
    return_reminders: int
    overdue_reminders: int
    skipped: int
