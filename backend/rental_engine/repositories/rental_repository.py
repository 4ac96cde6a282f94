from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session, selectinload

from rental_engine.models.rental import OUTSTANDING_STATUSES, Rental, RentalStatus

_OUTSTANDING = [s.value for s in OUTSTANDING_STATUSES]


class RentalRepository:
    """Rental store. Never commits; the caller owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, rental_id: str, for_update: bool = False) -> Optional[Rental]:
        query = self.db.query(Rental).filter(Rental.id == rental_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_id_with_details(self, rental_id: str) -> Optional[Rental]:
        """Rental with its asset and customer loaded for display"""
        return self.db.query(Rental).options(
            selectinload(Rental.asset),
            selectinload(Rental.customer)
        ).filter(Rental.id == rental_id).first()

    def add(self, rental: Rental) -> Rental:
        self.db.add(rental)
        return rental

    def delete(self, rental: Rental) -> None:
        self.db.delete(rental)

    def list_by_customer(self, customer_id: str) -> List[Rental]:
        return self.db.query(Rental).options(selectinload(Rental.asset)).filter(
            Rental.customer_id == customer_id
        ).order_by(Rental.created_at.desc()).all()

    def list_by_asset(self, asset_id: str) -> List[Rental]:
        return self.db.query(Rental).filter(
            Rental.asset_id == asset_id
        ).order_by(Rental.created_at.desc()).all()

    def list_by_status(self, status: RentalStatus) -> List[Rental]:
        return self.db.query(Rental).filter(
            Rental.status == RentalStatus(status).value
        ).order_by(Rental.created_at.desc()).all()

    def list_by_date_range(self, start: datetime, end: datetime) -> List[Rental]:
        """Rentals whose start date falls inside [start, end]"""
        return self.db.query(Rental).filter(
            and_(Rental.start_date >= start, Rental.start_date <= end)
        ).order_by(Rental.start_date.desc()).all()

    def list_conflicts(
        self,
        asset_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None
    ) -> List[Rental]:
        """Outstanding rentals of the asset overlapping the half-open window [start, end)."""
        query = self.db.query(Rental).filter(
            and_(
                Rental.asset_id == asset_id,
                Rental.status.in_(_OUTSTANDING),
                Rental.start_date < end,
                Rental.estimated_return_date > start,
            )
        )
        if exclude_id:
            query = query.filter(Rental.id != exclude_id)
        return query.order_by(Rental.start_date.asc()).all()

    def has_outstanding(self, asset_id: str, exclude_id: Optional[str] = None) -> bool:
        query = self.db.query(Rental.id).filter(
            and_(Rental.asset_id == asset_id, Rental.status.in_(_OUTSTANDING))
        )
        if exclude_id:
            query = query.filter(Rental.id != exclude_id)
        return query.first() is not None

    def list_overdue(self, now: datetime) -> List[Rental]:
        return self.db.query(Rental).options(
            selectinload(Rental.asset),
            selectinload(Rental.customer)
        ).filter(
            and_(
                Rental.status == RentalStatus.ACTIVE.value,
                Rental.actual_return_date.is_(None),
                Rental.estimated_return_date < now,
            )
        ).order_by(Rental.estimated_return_date.asc()).all()

    def list_upcoming_returns(self, now: datetime, days: int) -> List[Rental]:
        horizon = now + timedelta(days=days)
        return self.db.query(Rental).options(
            selectinload(Rental.asset),
            selectinload(Rental.customer)
        ).filter(
            and_(
                Rental.status == RentalStatus.ACTIVE.value,
                Rental.actual_return_date.is_(None),
                Rental.estimated_return_date >= now,
                Rental.estimated_return_date <= horizon,
            )
        ).order_by(Rental.estimated_return_date.asc()).all()

    def list_paged(
        self,
        page: int = 1,
        page_size: int = 25,
        customer_id: Optional[str] = None,
        asset_id: Optional[str] = None,
        status: Optional[RentalStatus] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        with_details: bool = False,
    ) -> Tuple[List[Rental], int]:
        """Filtered rentals, newest first, with the unpaged total"""
        page = max(page, 1)
        page_size = page_size if page_size >= 1 else 10

        query = self.db.query(Rental)
        if with_details:
            query = query.options(selectinload(Rental.asset), selectinload(Rental.customer))

        if customer_id:
            query = query.filter(Rental.customer_id == customer_id)
        if asset_id:
            query = query.filter(Rental.asset_id == asset_id)
        if status:
            query = query.filter(Rental.status == RentalStatus(status).value)
        if start_from:
            query = query.filter(Rental.start_date >= start_from)
        if start_to:
            query = query.filter(Rental.start_date <= start_to)

        total = query.count()
        items = query.order_by(Rental.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()
        return items, total

    # Aggregates

    def count(self) -> int:
        return self.db.query(func.count(Rental.id)).scalar() or 0

    def count_by_status(self) -> Dict[str, int]:
        results = self.db.query(
            Rental.status,
            func.count(Rental.id).label("count")
        ).group_by(Rental.status).all()
        return {status: count for status, count in results}

    def count_overdue(self, now: datetime) -> int:
        return self.db.query(func.count(Rental.id)).filter(
            and_(
                Rental.status == RentalStatus.ACTIVE.value,
                Rental.actual_return_date.is_(None),
                Rental.estimated_return_date < now,
            )
        ).scalar() or 0

    def total_revenue(self, start: datetime, end: datetime) -> Decimal:
        """Sum of total_amount for completed rentals starting inside [start, end]"""
        total = self.db.query(func.sum(Rental.total_amount)).filter(
            and_(
                Rental.status == RentalStatus.COMPLETED.value,
                Rental.start_date >= start,
                Rental.start_date <= end,
            )
        ).scalar()
        return Decimal(total or 0)

    def pending_payments_total(self) -> Decimal:
        total = self.db.query(func.sum(Rental.pending_amount)).filter(
            Rental.status.in_(_OUTSTANDING)
        ).scalar()
        return Decimal(total or 0)
