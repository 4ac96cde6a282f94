from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, field_validator

from rental_engine.schemas.rental import RentalResponse


class AssetResponse(BaseModel):
    """Asset with its rate card and maintenance schedule"""
    id: str
    brand: str
    model: str
    year: Optional[int] = None
    license_plate: Optional[str] = None
    serial_number: Optional[str] = None
    asset_type: str
    display_name: str
    hourly_rate: Decimal
    daily_rate: Decimal
    weekly_rate: Decimal
    monthly_rate: Decimal
    status: str
    is_active: bool
    current_hours: Optional[Decimal] = None
    current_mileage: Optional[Decimal] = None
    last_maintenance_date: Optional[datetime] = None
    next_maintenance_date: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class AssetStatusRequest(BaseModel):
    status: str
    changed_by: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return (v or "").strip().lower()


class AssetUsageRequest(BaseModel):
    hours: Optional[Decimal] = None
    mileage: Optional[Decimal] = None


class AvailabilityResponse(BaseModel):
    """Availability of an asset over [start_date, estimated_return_date)"""
    asset_id: str
    start_date: datetime
    estimated_return_date: datetime
    available: bool
    conflicts: List[RentalResponse]
