from rental_engine.models.asset import Asset, AssetStatus, AssetType
from rental_engine.models.customer import Customer
from rental_engine.models.rental import (
    Rental,
    RentalStatus,
    RatePeriodType,
    PaymentMethod,
    OUTSTANDING_STATUSES,
    TERMINAL_STATUSES,
)
from rental_engine.models.audit_log import RentalAuditLog
from rental_engine.models.rental_notification import (
    RentalNotification,
    NotificationStatus,
    NotificationType,
)

__all__ = [
    "Asset",
    "AssetStatus",
    "AssetType",
    "Customer",
    "Rental",
    "RentalStatus",
    "RatePeriodType",
    "PaymentMethod",
    "OUTSTANDING_STATUSES",
    "TERMINAL_STATUSES",
    "RentalAuditLog",
    "RentalNotification",
    "NotificationStatus",
    "NotificationType",
]
