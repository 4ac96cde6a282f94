from datetime import datetime
from decimal import Decimal
from typing import Dict

from pydantic import BaseModel


class DashboardSummaryResponse(BaseModel):
    """Rental dashboard figures"""
    rental_status_counts: Dict[str, int]
    asset_status_counts: Dict[str, int]
    total_rentals: int
    active_rentals: int
    overdue_count: int
    upcoming_returns: int
    maintenance_due: int
    revenue_this_month: Decimal
    pending_payments_total: Decimal
    generated_at: datetime


class RevenueResponse(BaseModel):
    start: datetime
    end: datetime
    revenue: Decimal


class PendingPaymentsResponse(BaseModel):
    pending_payments_total: Decimal
