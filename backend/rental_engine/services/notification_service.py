import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import httpx
from sqlalchemy import and_
from sqlalchemy.orm import Session

from rental_engine.config import Settings, settings
from rental_engine.models.rental import Rental
from rental_engine.models.rental_notification import (
    NotificationStatus,
    NotificationType,
    RentalNotification,
)
from rental_engine.utils.exceptions import NotificationError
from rental_engine.utils.timezone import to_utc_iso_z, utcnow

logger = logging.getLogger(__name__)


class NotificationSink:
    """Delivery channel for rental notifications."""

    target = "log"

    def send(self, notification_type: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    target = "log"

    def send(self, notification_type: str, payload: Dict[str, Any]) -> None:
        logger.info(
            f"[Notification] {notification_type}: rental={payload.get('rental_id')} "
            f"customer={payload.get('customer_email') or payload.get('customer_name')}"
        )


class WebhookNotificationSink(NotificationSink):
    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    @property
    def target(self) -> str:
        return self.url

    def send(self, notification_type: str, payload: Dict[str, Any]) -> None:
        message = {"type": notification_type, "data": payload}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=message)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise NotificationError("send", f"timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise NotificationError("send", f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise NotificationError("send", str(e)) from e


def build_notification_sink(config: Optional[Settings] = None) -> NotificationSink:
    config = config or settings
    if config.notifications_configured():
        return WebhookNotificationSink(config.notification_webhook_url, config.notification_timeout_seconds)
    return LoggingNotificationSink()


class RentalNotifier:
    """
    Sends rental notifications and records each attempt.

    Delivery failures are logged and stored on the notification row; they
    never propagate to the caller, whose rental change is already committed.
    """

    def __init__(self, db: Session, sink: Optional[NotificationSink] = None, dedupe_hours: Optional[int] = None):
        self.db = db
        self.sink = sink or build_notification_sink()
        self.dedupe_hours = settings.reminder_dedupe_hours if dedupe_hours is None else dedupe_hours

    def notify_rental_confirmed(self, rental: Rental) -> RentalNotification:
        return self._dispatch(rental, NotificationType.RENTAL_CONFIRMED)

    def notify_rental_completed(self, rental: Rental) -> RentalNotification:
        return self._dispatch(rental, NotificationType.RENTAL_COMPLETED)

    def notify_rental_cancelled(self, rental: Rental) -> RentalNotification:
        return self._dispatch(rental, NotificationType.RENTAL_CANCELLED)

    def notify_return_reminder(
        self,
        rental: Rental,
        overdue: bool = False,
        now: Optional[datetime] = None
    ) -> Optional[RentalNotification]:
        """Send a return (or overdue) reminder unless one went out inside the dedupe window"""
        now = now or utcnow()
        notification_type = NotificationType.OVERDUE_REMINDER if overdue else NotificationType.RETURN_REMINDER

        recent = self.check_recent_notification(rental.id, notification_type, now)
        if recent:
            logger.debug(f"Skipping {notification_type.value} for rental {rental.id}: sent at {recent.sent_at}")
            return None

        return self._dispatch(rental, notification_type, now=now)

    def check_recent_notification(
        self,
        rental_id: str,
        notification_type: NotificationType,
        now: Optional[datetime] = None
    ) -> Optional[RentalNotification]:
        cutoff_time = (now or utcnow()) - timedelta(hours=self.dedupe_hours)
        return self.db.query(RentalNotification).filter(
            and_(
                RentalNotification.rental_id == rental_id,
                RentalNotification.notification_type == notification_type.value,
                RentalNotification.status == NotificationStatus.SENT.value,
                RentalNotification.sent_at >= cutoff_time,
            )
        ).order_by(RentalNotification.sent_at.desc()).first()

    def _build_payload(self, rental: Rental, notification_type: NotificationType) -> Dict[str, Any]:
        asset = rental.asset
        customer = rental.customer
        payload = {
            "rental_id": rental.id,
            "status": rental.status,
            "asset_id": rental.asset_id,
            "asset": asset.display_name if asset else None,
            "customer_id": rental.customer_id,
            "customer_name": customer.full_name if customer else None,
            "customer_email": customer.email if customer else None,
            "start_date": to_utc_iso_z(rental.start_date),
            "estimated_return_date": to_utc_iso_z(rental.estimated_return_date),
            "total_amount": str(rental.total_amount),
            "pending_amount": str(rental.pending_amount),
        }
        if notification_type == NotificationType.RENTAL_COMPLETED:
            payload["actual_return_date"] = to_utc_iso_z(rental.actual_return_date)
        if notification_type == NotificationType.RENTAL_CANCELLED:
            payload["cancellation_reason"] = rental.cancellation_reason
        return payload

    def _dispatch(
        self,
        rental: Rental,
        notification_type: NotificationType,
        now: Optional[datetime] = None
    ) -> RentalNotification:
        notification = RentalNotification(
            rental_id=rental.id,
            notification_type=notification_type.value,
            status=NotificationStatus.PENDING.value,
            target=self.sink.target,
        )
        self.db.add(notification)

        try:
            self.sink.send(notification_type.value, self._build_payload(rental, notification_type))
            notification.status = NotificationStatus.SENT.value
            notification.sent_at = now or utcnow()
        except NotificationError as e:
            logger.warning(f"Notification {notification_type.value} failed for rental {rental.id}: {e.message}")
            notification.status = NotificationStatus.FAILED.value
            notification.error_message = e.message
        except Exception as e:
            logger.error(
                f"Unexpected error sending {notification_type.value} for rental {rental.id}: {e}",
                exc_info=True
            )
            notification.status = NotificationStatus.FAILED.value
            notification.error_message = str(e)

        self.db.commit()
        return notification
