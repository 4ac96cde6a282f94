from datetime import datetime, timedelta
from decimal import Decimal

from rental_engine.models.asset import AssetStatus
from rental_engine.services.analytics_service import RentalAnalyticsService


def d(day: int) -> datetime:
    return datetime(2026, 3, day)


def test_status_counts_include_every_status(db):
    counts = RentalAnalyticsService(db).get_status_counts()
    assert counts == {"pending": 0, "active": 0, "completed": 0, "cancelled": 0}


def test_dashboard_summary(db, make_service, make_asset, customer):
    service = make_service(now=d(6))
    excavator = make_asset()
    crane = make_asset(asset_type="crane")
    make_asset(status=AssetStatus.MAINTENANCE.value, next_maintenance_date=d(8))

    done = service.create_rental(customer.id, excavator.id, d(1), d(3), rate="100").unwrap()
    service.complete_rental(done.id, return_date=d(3)).unwrap()
    late = service.create_rental(customer.id, crane.id, d(2), d(5), rate="50").unwrap()
    service.activate_rental(late.id).unwrap()
    service.record_payment(late.id, "50").unwrap()

    summary = RentalAnalyticsService(db).get_dashboard_summary(now=d(6))

    assert summary["rental_status_counts"] == {"pending": 0, "active": 1, "completed": 1, "cancelled": 0}
    assert summary["asset_status_counts"] == {"available": 1, "rented": 1, "maintenance": 1, "retired": 0}
    assert summary["total_rentals"] == 2
    assert summary["active_rentals"] == 1
    assert summary["overdue_count"] == 1
    assert summary["upcoming_returns"] == 0
    assert summary["maintenance_due"] == 1
    assert summary["revenue_this_month"] == Decimal("200.00")
    assert summary["pending_payments_total"] == Decimal("100.00")
    assert summary["generated_at"] == d(6)


def test_revenue_window_excludes_rentals_started_outside(db, service, make_asset, customer):
    asset = make_asset()
    rental = service.create_rental(customer.id, asset.id, d(1), d(3), rate="100").unwrap()
    service.complete_rental(rental.id, return_date=d(3)).unwrap()

    analytics = RentalAnalyticsService(db)
    assert analytics.get_revenue(d(2), d(10)) == Decimal("0.00")
    assert analytics.get_revenue(d(1), d(1) + timedelta(hours=1)) == Decimal("200.00")
