from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rental_engine.models.audit_log import RentalAuditLog
from rental_engine.models.rental import Rental
from rental_engine.utils.timezone import utcnow


class AuditService:
    """Audit trail for rental lifecycle and ledger events.

    Entries are added to the caller's session and committed together with
    the change they describe.
    """

    def __init__(self, db: Session):
        self.db = db

    def log_rental_action(self,
                          rental: Rental,
                          action: str,
                          from_status: Optional[str] = None,
                          to_status: Optional[str] = None,
                          reason: Optional[str] = None,
                          changed_by: Optional[str] = None,
                          details: Optional[Dict[str, Any]] = None) -> RentalAuditLog:
        """
        Record a rental event

        Args:
            rental: The rental the event belongs to
            action: Event name ("created", "completed", "payment_recorded", ...)
            from_status: Status before the event, for transitions
            to_status: Status after the event, for transitions
            reason: Free-text reason (cancellations)
            changed_by: Who triggered the event
            details: Additional context (amounts, readings)

        Returns:
            The created audit log entry
        """
        entry = RentalAuditLog(
            rental_id=rental.id,
            asset_id=rental.asset_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            changed_by=changed_by,
            details=details,
            timestamp=utcnow()
        )
        self.db.add(entry)
        return entry

    def get_rental_history(self, rental_id: str) -> List[RentalAuditLog]:
        return self.db.query(RentalAuditLog).filter(
            RentalAuditLog.rental_id == rental_id
        ).order_by(RentalAuditLog.timestamp.asc()).all()
