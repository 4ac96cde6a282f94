from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, jsonify, request

from rental_engine.database import get_db
from rental_engine.schemas.analytics import (
    DashboardSummaryResponse,
    PendingPaymentsResponse,
    RevenueResponse,
)
from rental_engine.services.analytics_service import RentalAnalyticsService
from rental_engine.utils.exceptions import ValidationError
from rental_engine.utils.timezone import as_utc_naive, utcnow


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _date_arg(name: str, default):
    raw = request.args.get(name)
    if not raw:
        return default
    try:
        return as_utc_naive(raw)
    except ValueError:
        raise ValidationError(f"Invalid date for {name}", field=name, details={"provided": raw})


@analytics_bp.route("/dashboard", methods=["GET"])
def get_dashboard():
    with get_db() as db:
        summary = RentalAnalyticsService(db).get_dashboard_summary()
        return jsonify(DashboardSummaryResponse(**summary).model_dump(mode="json"))


@analytics_bp.route("/status-counts", methods=["GET"])
def get_status_counts():
    with get_db() as db:
        return jsonify(RentalAnalyticsService(db).get_status_counts())


@analytics_bp.route("/revenue", methods=["GET"])
def get_revenue():
    """Revenue of completed rentals starting in [start, end]; defaults to the last 30 days."""
    end = _date_arg("end", utcnow())
    start = _date_arg("start", end - timedelta(days=30))
    if end < start:
        raise ValidationError("end must not be before start", field="end")

    with get_db() as db:
        revenue = RentalAnalyticsService(db).get_revenue(start, end)
        return jsonify(RevenueResponse(start=start, end=end, revenue=revenue).model_dump(mode="json"))


@analytics_bp.route("/pending-payments", methods=["GET"])
def get_pending_payments():
    with get_db() as db:
        total = RentalAnalyticsService(db).get_pending_payments_total()
        return jsonify(PendingPaymentsResponse(pending_payments_total=total).model_dump(mode="json"))
