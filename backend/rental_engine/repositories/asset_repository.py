from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from rental_engine.models.asset import Asset, AssetStatus


class AssetRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, asset_id: str) -> Optional[Asset]:
        return self.db.query(Asset).filter(Asset.id == asset_id).first()

    def get_for_update(self, asset_id: str) -> Optional[Asset]:
        """Row-locked read; SQLite ignores FOR UPDATE and relies on the version column."""
        return self.db.query(Asset).filter(Asset.id == asset_id).with_for_update().first()

    def list(
        self,
        status: Optional[AssetStatus] = None,
        asset_type: Optional[str] = None,
        active_only: bool = False,
        search: Optional[str] = None,
    ) -> List[Asset]:
        query = self.db.query(Asset)

        if status:
            query = query.filter(Asset.status == AssetStatus(status).value)
        if asset_type:
            query = query.filter(Asset.asset_type == asset_type)
        if active_only:
            query = query.filter(Asset.is_active.is_(True))
        if search:
            search_filter = or_(
                Asset.brand.ilike(f"%{search}%"),
                Asset.model.ilike(f"%{search}%"),
                Asset.license_plate.ilike(f"%{search}%"),
                Asset.serial_number.ilike(f"%{search}%")
            )
            query = query.filter(search_filter)

        return query.order_by(Asset.brand.asc(), Asset.model.asc()).all()

    def list_needing_maintenance(self, now: datetime, days: int = 7) -> List[Asset]:
        horizon = now + timedelta(days=days)
        return self.db.query(Asset).filter(
            and_(
                Asset.is_active.is_(True),
                Asset.next_maintenance_date.isnot(None),
                Asset.next_maintenance_date <= horizon,
            )
        ).order_by(Asset.next_maintenance_date.asc()).all()

    def count_by_status(self) -> Dict[str, int]:
        results = self.db.query(
            Asset.status,
            func.count(Asset.id).label("count")
        ).filter(Asset.is_active.is_(True)).group_by(Asset.status).all()
        return {status: count for status, count in results}
