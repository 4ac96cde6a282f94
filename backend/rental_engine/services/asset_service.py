import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from rental_engine.config import settings
from rental_engine.models.asset import Asset, AssetStatus
from rental_engine.repositories.asset_repository import AssetRepository
from rental_engine.repositories.rental_repository import RentalRepository
from rental_engine.utils.exceptions import ConflictError, NotFoundError, ValidationError
from rental_engine.utils.money import to_decimal_or_none
from rental_engine.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class AssetService:
    """Asset registry operations; the asset catalog itself is maintained elsewhere."""

    def __init__(self, db: Session):
        self.db = db
        self.assets = AssetRepository(db)
        self.rentals = RentalRepository(db)

    def get_asset(self, asset_id: str) -> Asset:
        asset = self.assets.get_by_id(asset_id)
        if not asset:
            raise NotFoundError("Asset", asset_id)
        return asset

    def list_assets(
        self,
        status: Optional[str] = None,
        asset_type: Optional[str] = None,
        active_only: bool = False,
        search: Optional[str] = None,
    ) -> List[Asset]:
        return self.assets.list(
            status=self._parse_status(status) if status else None,
            asset_type=asset_type,
            active_only=active_only,
            search=search,
        )

    def list_available_assets(self) -> List[Asset]:
        return self.assets.list(status=AssetStatus.AVAILABLE, active_only=True)

    def list_assets_needing_maintenance(
        self,
        days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[Asset]:
        lookahead = settings.maintenance_lookahead_days if days is None else days
        if lookahead < 0:
            raise ValidationError("days must be zero or greater", field="days")
        return self.assets.list_needing_maintenance(now or utcnow(), lookahead)

    def set_status(self, asset_id: str, status: Any, changed_by: Optional[str] = None) -> Asset:
        """
        Operator status change (maintenance, retirement, back to service).

        'rented' is owned by the booking flow and cannot be set here. While an
        asset has outstanding rentals its status stays put.
        """
        new_status = self._parse_status(status)
        if new_status == AssetStatus.RENTED:
            raise ValidationError("Rented status is set by bookings, not directly", field="status")

        asset = self.assets.get_for_update(asset_id)
        if not asset:
            raise NotFoundError("Asset", asset_id)

        if asset.status == new_status.value:
            return asset

        if self.rentals.has_outstanding(asset.id):
            raise ConflictError(
                f"Asset {asset_id} has outstanding rentals; complete or cancel them first",
                code="ASSET_IN_USE",
                details={"asset_id": asset_id, "requested_status": new_status.value},
            )

        previous = asset.status
        asset.status = new_status.value
        if new_status == AssetStatus.RETIRED:
            asset.is_active = False
        elif new_status == AssetStatus.AVAILABLE:
            asset.is_active = True
        asset.updated_at = utcnow()

        self.db.commit()
        self.db.refresh(asset)
        logger.info(f"Asset {asset_id} status changed: {previous} -> {asset.status} (by {changed_by or 'system'})")
        return asset

    def record_usage(self, asset_id: str, hours: Any = None, mileage: Any = None) -> Asset:
        """Update usage counters; readings never go backwards."""
        asset = self.assets.get_for_update(asset_id)
        if not asset:
            raise NotFoundError("Asset", asset_id)

        try:
            new_hours = to_decimal_or_none(hours)
            new_mileage = to_decimal_or_none(mileage)
        except ValueError as e:
            raise ValidationError(str(e))

        if new_hours is not None:
            if asset.current_hours is not None and new_hours < asset.current_hours:
                raise ValidationError("Hours reading cannot decrease", field="hours")
            asset.current_hours = new_hours
        if new_mileage is not None:
            if asset.current_mileage is not None and new_mileage < asset.current_mileage:
                raise ValidationError("Mileage reading cannot decrease", field="mileage")
            asset.current_mileage = new_mileage

        self.db.commit()
        self.db.refresh(asset)
        return asset

    def _parse_status(self, value: Any) -> AssetStatus:
        if isinstance(value, AssetStatus):
            return value
        try:
            return AssetStatus(str(value or "").strip().lower())
        except ValueError:
            allowed = [s.value for s in AssetStatus]
            raise ValidationError(
                f"Asset status must be one of: {allowed}",
                field="status",
                details={"allowed": allowed, "provided": value},
            )
