from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from rental_engine.config import settings
from rental_engine.models.asset import AssetStatus
from rental_engine.models.rental import RentalStatus
from rental_engine.repositories.asset_repository import AssetRepository
from rental_engine.repositories.rental_repository import RentalRepository
from rental_engine.utils.money import to_money
from rental_engine.utils.timezone import utcnow


class RentalAnalyticsService:
    """Service for dashboard data aggregation"""

    def __init__(self, db: Session):
        self.db = db
        self.rentals = RentalRepository(db)
        self.assets = AssetRepository(db)

    def get_status_counts(self) -> Dict[str, int]:
        """
        Get count of rentals grouped by status.

        Returns:
            Dict with every rental status as a key, e.g. {"pending": 2, "active": 5, "completed": 10, "cancelled": 0}
        """
        counts = self.rentals.count_by_status()
        return {status.value: counts.get(status.value, 0) for status in RentalStatus}

    def get_asset_status_counts(self) -> Dict[str, int]:
        """Count of active assets per status"""
        counts = self.assets.count_by_status()
        return {status.value: counts.get(status.value, 0) for status in AssetStatus}

    def get_revenue(self, start: datetime, end: datetime) -> Decimal:
        return to_money(self.rentals.total_revenue(start, end), bounded=False)

    def get_pending_payments_total(self) -> Decimal:
        return to_money(self.rentals.pending_payments_total(), bounded=False)

    def get_dashboard_summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Get the rental dashboard in one call.

        Returns:
            Dict with keys:
            - rental_status_counts / asset_status_counts
            - overdue_count: active rentals past their estimated return
            - upcoming_returns: active rentals due inside the configured window
            - maintenance_due: active assets with maintenance inside the lookahead
            - revenue_this_month: completed rentals that started since the first of the month
            - pending_payments_total: balance owed on outstanding rentals
        """
        now = now or utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        status_counts = self.get_status_counts()
        return {
            "rental_status_counts": status_counts,
            "asset_status_counts": self.get_asset_status_counts(),
            "total_rentals": self.rentals.count(),
            "active_rentals": status_counts[RentalStatus.ACTIVE.value],
            "overdue_count": self.rentals.count_overdue(now),
            "upcoming_returns": len(self.rentals.list_upcoming_returns(now, settings.upcoming_returns_days)),
            "maintenance_due": len(self.assets.list_needing_maintenance(now, settings.maintenance_lookahead_days)),
            "revenue_this_month": self.get_revenue(month_start, now),
            "pending_payments_total": self.get_pending_payments_total(),
            "generated_at": now,
        }
