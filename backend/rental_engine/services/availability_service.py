"""
Admission checks for asset rental windows.

Windows are half-open: a rental over [Mar 1, Mar 5) frees the asset at the
instant Mar 5 begins, so a rental starting on Mar 5 does not conflict.
Nothing here writes to the database.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from rental_engine.models.rental import Rental
from rental_engine.repositories.rental_repository import RentalRepository


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Overlap rule for [a_start, a_end) and [b_start, b_end): a_start < b_end and b_start < a_end"""
    return a_start < b_end and b_start < a_end


class AvailabilityChecker:
    def __init__(self, db: Session, rentals: Optional[RentalRepository] = None):
        self.db = db
        self.rentals = rentals or RentalRepository(db)

    def conflicts(
        self,
        asset_id: str,
        start: datetime,
        end: datetime,
        exclude_rental_id: Optional[str] = None
    ) -> List[Rental]:
        """Pending/active rentals of the asset that overlap [start, end)"""
        return self.rentals.list_conflicts(asset_id, start, end, exclude_id=exclude_rental_id)

    def is_available(
        self,
        asset_id: str,
        start: datetime,
        end: datetime,
        exclude_rental_id: Optional[str] = None
    ) -> bool:
        return not self.conflicts(asset_id, start, end, exclude_rental_id=exclude_rental_id)
