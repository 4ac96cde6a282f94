import uuid

from sqlalchemy import Column, DateTime, JSON, String, Text

from rental_engine.database import Base
from rental_engine.utils.timezone import utcnow


class RentalAuditLog(Base):
    """Lifecycle and ledger events for rentals"""
    __tablename__ = "rental_audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # No FK: entries outlive deleted rentals
    rental_id = Column(String(36), nullable=False, index=True)
    asset_id = Column(String(36), nullable=True, index=True)

    action = Column(String(50), nullable=False)               # "created", "completed", "payment_recorded", ...
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    changed_by = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)

    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
