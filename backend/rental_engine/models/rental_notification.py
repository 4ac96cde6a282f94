import uuid
import enum

from sqlalchemy import Column, DateTime, String, Text

from rental_engine.database import Base
from rental_engine.utils.timezone import utcnow


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(str, enum.Enum):
    RENTAL_CONFIRMED = "rental_confirmed"
    RENTAL_COMPLETED = "rental_completed"
    RENTAL_CANCELLED = "rental_cancelled"
    RETURN_REMINDER = "return_reminder"
    OVERDUE_REMINDER = "overdue_reminder"


class RentalNotification(Base):
    __tablename__ = "rental_notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rental_id = Column(String(36), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value, index=True)
    target = Column(String(255), nullable=True)  # webhook URL or "log"
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
