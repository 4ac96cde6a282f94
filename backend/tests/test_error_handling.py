"""Tests for error handling functionality"""

import pytest

from rental_engine.utils.exceptions import (
    ConcurrencyError,
    ConflictError,
    NotFoundError,
    NotificationError,
    RentalApiError,
    RentalConflictError,
    ServerError,
    StatusTransitionError,
    ValidationError,
)
from rental_engine.utils.result import PaginatedResult, ServiceResult


def test_rental_api_error_creation():
    """Test RentalApiError base class"""
    error = RentalApiError("TEST_ERROR", "Test message", 400, "field1", {"key": "value"})

    assert error.code == "TEST_ERROR"
    assert error.message == "Test message"
    assert error.status_code == 400
    assert error.field == "field1"
    assert error.details == {"key": "value"}
    assert error.to_dict() == {
        "code": "TEST_ERROR",
        "message": "Test message",
        "field": "field1",
        "details": {"key": "value"},
    }


def test_validation_error():
    error = ValidationError("Invalid rate", field="rate", details={"provided": "-1"})

    assert error.code == "VALIDATION_ERROR"
    assert error.status_code == 400
    assert error.field == "rate"


def test_not_found_error():
    error = NotFoundError("Rental", "r-123")

    assert error.code == "NOT_FOUND"
    assert error.status_code == 404
    assert error.message == "Rental not found: r-123"
    assert error.details == {"resource": "Rental", "resource_id": "r-123"}


def test_conflict_family_maps_to_409():
    errors = [
        RentalConflictError("a-1", ["r-1", "r-2"]),
        StatusTransitionError("completed", "active", "rental is closed"),
        ConcurrencyError("Asset", "a-1"),
    ]
    for error in errors:
        assert isinstance(error, ConflictError)
        assert error.status_code == 409

    assert errors[0].code == "RENTAL_CONFLICT"
    assert errors[0].details["conflicting_rental_ids"] == ["r-1", "r-2"]
    assert errors[1].code == "INVALID_STATUS_TRANSITION"
    assert errors[1].message == "Invalid status transition from completed to active: rental is closed"
    assert errors[2].code == "CONCURRENT_MODIFICATION"


def test_server_and_notification_errors():
    server = ServerError("create_rental", "unexpected error", details={"asset_id": "a-1"})
    assert server.status_code == 500
    assert server.details == {"operation": "create_rental", "asset_id": "a-1"}

    notification = NotificationError("send", "timed out")
    assert notification.code == "EXTERNAL_SERVICE_ERROR"
    assert notification.status_code == 502
    assert notification.details["service"] == "Notification"


def test_service_result():
    success = ServiceResult.success(42)
    assert success.ok
    assert success.error_code is None
    assert success.unwrap() == 42

    failure = ServiceResult.failure(NotFoundError("Asset", "a-1"))
    assert not failure.ok
    assert failure.error_code == "NOT_FOUND"
    with pytest.raises(NotFoundError):
        failure.unwrap()


def test_paginated_result():
    page = PaginatedResult(items=[1, 2], total=5, page=2, page_size=2)
    assert page.total_pages == 3
    assert page.has_next
    assert page.has_previous

    empty = PaginatedResult(items=[], total=0, page=1, page_size=25)
    assert empty.total_pages == 0
    assert not empty.has_next


def test_error_response_format(client):
    response = client.get("/api/rentals/does-not-exist")

    assert response.status_code == 404
    body = response.get_json()
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["error"]["details"]["resource"] == "Rental"
    assert body["request_id"]


def test_unknown_route_uses_error_format(client):
    response = client.get("/api/nowhere")

    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "HTTP_EXCEPTION"


def test_unexpected_exception_is_500(app, client, monkeypatch):
    from rental_engine.services import analytics_service

    def broken(self):
        raise RuntimeError("boom")

    monkeypatch.setattr(analytics_service.RentalAnalyticsService, "get_status_counts", broken)
    response = client.get("/api/analytics/status-counts")

    assert response.status_code == 500
    body = response.get_json()
    assert body["error"]["code"] == "INTERNAL_SERVER_ERROR"
    assert body["error"]["details"] == {"error_type": "RuntimeError"}
