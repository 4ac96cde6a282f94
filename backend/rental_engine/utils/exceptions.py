class RentalApiError(Exception):
    """Base exception for rental engine errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "details": self.details,
        }


class ValidationError(RentalApiError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class NotFoundError(RentalApiError):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__("NOT_FOUND", message, 404, details={"resource": resource, "resource_id": resource_id})


class ConflictError(RentalApiError):
    def __init__(self, message: str, code: str = "CONFLICT", details: dict = None):
        super().__init__(code, message, 409, details=details)


class RentalConflictError(ConflictError):
    """Requested window overlaps an outstanding rental of the same asset"""
    def __init__(self, asset_id: str, conflicting_ids: list):
        super().__init__(
            f"Asset {asset_id} is already reserved for this period",
            code="RENTAL_CONFLICT",
            details={"asset_id": asset_id, "conflicting_rental_ids": list(conflicting_ids)},
        )


class StatusTransitionError(ConflictError):
    def __init__(self, current_status: str, requested_status: str, reason: str = None):
        message = f"Invalid status transition from {current_status} to {requested_status}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class ConcurrencyError(ConflictError):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} was modified by another request"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(
            message,
            code="CONCURRENT_MODIFICATION",
            details={"resource": resource, "resource_id": resource_id},
        )


class ServerError(RentalApiError):
    def __init__(self, operation: str, reason: str = None, details: dict = None):
        message = f"{operation} failed"
        if reason:
            message += f": {reason}"
        payload = {"operation": operation}
        payload.update(details or {})
        super().__init__("SERVER_ERROR", message, 500, details=payload)


class ExternalServiceError(RentalApiError):
    def __init__(self, service_name: str, operation: str, reason: str = None):
        message = f"External service error: {service_name} {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(
            "EXTERNAL_SERVICE_ERROR",
            message,
            502,
            details={"service": service_name, "operation": operation}
        )


class NotificationError(ExternalServiceError):
    """Notification sink failure"""
    def __init__(self, operation: str, reason: str = None):
        super().__init__("Notification", operation, reason)
