"""
Rental state machine.

    pending --activate--> active
    pending|active --complete--> completed   (terminal)
    pending|active --cancel--> cancelled     (terminal)

Each transition mutates the rental, keeps the asset status in step with the
outstanding rentals, and writes an audit entry. Nothing here commits: the
reservation service owns the transaction so that rental, asset and audit
changes land together.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from rental_engine.models.asset import Asset, AssetStatus
from rental_engine.models.rental import Rental, RentalStatus
from rental_engine.repositories.rental_repository import RentalRepository
from rental_engine.services.audit_service import AuditService
from rental_engine.services.availability_service import AvailabilityChecker
from rental_engine.services.pricing_service import RentalAmounts, recompute_totals
from rental_engine.utils.exceptions import RentalConflictError, StatusTransitionError, ValidationError
from rental_engine.utils.money import ZERO, to_decimal_or_none
from rental_engine.utils.timezone import utcnow

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    RentalStatus.PENDING: [RentalStatus.ACTIVE, RentalStatus.COMPLETED, RentalStatus.CANCELLED],
    RentalStatus.ACTIVE: [RentalStatus.COMPLETED, RentalStatus.CANCELLED],
    RentalStatus.COMPLETED: [],  # Terminal state
    RentalStatus.CANCELLED: [],  # Terminal state
}


def _higher_reading(current: Optional[Decimal], final: Optional[Decimal]) -> Optional[Decimal]:
    if final is None:
        return current
    if current is None:
        return final
    return max(Decimal(current), Decimal(final))


class RentalLifecycle:
    def __init__(
        self,
        db: Session,
        availability: Optional[AvailabilityChecker] = None,
        rentals: Optional[RentalRepository] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.rentals = rentals or RentalRepository(db)
        self.availability = availability or AvailabilityChecker(db, self.rentals)
        self.audit = audit or AuditService(db)

    # Transition guards

    def is_valid_transition(self, from_status: RentalStatus, to_status: RentalStatus) -> bool:
        return to_status in VALID_TRANSITIONS.get(from_status, [])

    def ensure_transition(self, rental: Rental, to_status: RentalStatus) -> RentalStatus:
        current = RentalStatus(rental.status)
        if not self.is_valid_transition(current, to_status):
            reason = "rental is closed" if current.is_terminal else None
            raise StatusTransitionError(current.value, to_status.value, reason)
        return current

    def ensure_outstanding(self, rental: Rental, action: str) -> None:
        """Guard for non-transition edits that only make sense on pending/active rentals"""
        if not rental.is_outstanding:
            raise StatusTransitionError(rental.status, action, "rental is closed")

    # Asset bookkeeping

    def touch_asset(self, asset: Asset) -> None:
        """Force an UPDATE so the asset's version check serializes concurrent bookings."""
        asset.updated_at = utcnow()
        flag_modified(asset, "updated_at")

    def hold_asset(self, asset: Asset) -> None:
        asset.status = AssetStatus.RENTED.value
        self.touch_asset(asset)

    def release_asset(self, rental: Rental, asset: Optional[Asset]) -> None:
        """Return a rented asset to service once no other rental holds it."""
        if asset is None or asset.status != AssetStatus.RENTED.value:
            # Maintenance/retired were set by an operator; leave them alone
            return
        # Every close of a rented asset bumps its version, even when it stays rented
        self.touch_asset(asset)
        if self.rentals.has_outstanding(asset.id, exclude_id=rental.id):
            return
        asset.status = AssetStatus.AVAILABLE.value

    # Transitions

    def create(
        self,
        asset: Asset,
        customer_id: str,
        start_date: datetime,
        estimated_return_date: datetime,
        rate: Decimal,
        rate_period_type: str,
        amounts: RentalAmounts,
        deposit: Decimal = ZERO,
        discount: Decimal = ZERO,
        tax: Decimal = ZERO,
        payment_method: str = "cash",
        pickup_location: Optional[str] = None,
        return_location: Optional[str] = None,
        initial_hours: Any = None,
        initial_mileage: Any = None,
        initial_condition: Optional[str] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Rental:
        conflicting = self.availability.conflicts(asset.id, start_date, estimated_return_date)
        if conflicting:
            raise RentalConflictError(asset.id, [r.id for r in conflicting])

        rental = Rental(
            id=str(uuid.uuid4()),
            customer_id=customer_id,
            asset_id=asset.id,
            start_date=start_date,
            estimated_return_date=estimated_return_date,
            status=RentalStatus.PENDING.value,
            rate=rate,
            rate_period_type=rate_period_type,
            deposit=deposit,
            subtotal=amounts.subtotal,
            discount=discount,
            tax=tax,
            total_amount=amounts.total_amount,
            paid_amount=ZERO,
            pending_amount=amounts.total_amount,
            payment_method=payment_method,
            deposit_returned=False,
            pickup_location=pickup_location,
            return_location=return_location,
            initial_hours=to_decimal_or_none(initial_hours),
            initial_mileage=to_decimal_or_none(initial_mileage),
            initial_condition=initial_condition,
            notes=notes,
        )
        self.rentals.add(rental)
        self.hold_asset(asset)

        self.audit.log_rental_action(
            rental,
            "created",
            to_status=RentalStatus.PENDING.value,
            changed_by=created_by,
            details={
                "start_date": start_date.isoformat(),
                "estimated_return_date": estimated_return_date.isoformat(),
                "units": amounts.units,
                "total_amount": str(amounts.total_amount),
            },
        )
        return rental

    def activate(self, rental: Rental, changed_by: Optional[str] = None) -> Rental:
        previous = self.ensure_transition(rental, RentalStatus.ACTIVE)
        rental.status = RentalStatus.ACTIVE.value
        self.audit.log_rental_action(
            rental, "activated",
            from_status=previous.value,
            to_status=RentalStatus.ACTIVE.value,
            changed_by=changed_by,
        )
        return rental

    def complete(
        self,
        rental: Rental,
        asset: Optional[Asset],
        return_date: datetime,
        final_hours: Any = None,
        final_mileage: Any = None,
        final_condition: Optional[str] = None,
        deposit_returned: bool = False,
        notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> Rental:
        previous = self.ensure_transition(rental, RentalStatus.COMPLETED)

        if return_date < rental.start_date:
            raise ValidationError(
                "Return date cannot be before the rental start date",
                field="return_date",
                details={"start_date": rental.start_date.isoformat(), "return_date": return_date.isoformat()},
            )

        hours = to_decimal_or_none(final_hours)
        mileage = to_decimal_or_none(final_mileage)
        if hours is not None and rental.initial_hours is not None and hours < Decimal(rental.initial_hours):
            raise ValidationError("Final hours cannot be lower than initial hours", field="final_hours")
        if mileage is not None and rental.initial_mileage is not None and mileage < Decimal(rental.initial_mileage):
            raise ValidationError("Final mileage cannot be lower than initial mileage", field="final_mileage")

        window_changed = return_date != rental.estimated_return_date

        rental.actual_return_date = return_date
        rental.status = RentalStatus.COMPLETED.value
        rental.final_hours = hours
        rental.final_mileage = mileage
        rental.final_condition = final_condition
        if deposit_returned:
            rental.deposit_returned = True
        if notes:
            if rental.notes:
                rental.notes = f"{rental.notes}\n\n[Return note] {notes}"
            else:
                rental.notes = f"[Return note] {notes}"

        recompute_totals(rental)

        if asset is not None:
            asset.current_hours = _higher_reading(asset.current_hours, hours)
            asset.current_mileage = _higher_reading(asset.current_mileage, mileage)
        self.release_asset(rental, asset)

        self.audit.log_rental_action(
            rental, "completed",
            from_status=previous.value,
            to_status=RentalStatus.COMPLETED.value,
            changed_by=changed_by,
            details={
                "return_date": return_date.isoformat(),
                "window_changed": window_changed,
                "duration_in_days": rental.duration_in_days,
                "total_amount": str(rental.total_amount),
                "pending_amount": str(rental.pending_amount),
            },
        )
        return rental

    def cancel(
        self,
        rental: Rental,
        asset: Optional[Asset],
        reason: str,
        return_deposit: bool = False,
        changed_by: Optional[str] = None,
    ) -> Rental:
        previous = self.ensure_transition(rental, RentalStatus.CANCELLED)

        reason_norm = (reason or "").strip()
        if not reason_norm:
            raise ValidationError("Reason is required when cancelling a rental", field="reason")

        # The ledger stays as-is for manual reconciliation
        rental.status = RentalStatus.CANCELLED.value
        rental.cancellation_reason = reason_norm
        if return_deposit:
            rental.deposit_returned = True

        self.release_asset(rental, asset)

        self.audit.log_rental_action(
            rental, "cancelled",
            from_status=previous.value,
            to_status=RentalStatus.CANCELLED.value,
            reason=reason_norm,
            changed_by=changed_by,
            details={"deposit_returned": bool(rental.deposit_returned)},
        )
        return rental
