import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

# Settings are loaded at import time, so this must happen before any rental_engine imports.
# A file database lets tests open competing sessions against the same data.
_db_dir = Path(tempfile.mkdtemp(prefix="rental_engine_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{(_db_dir / 'test.db').as_posix()}"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["FLASK_ENV"] = "testing"

from rental_engine import models  # noqa: E402,F401  # ensure models are registered
from rental_engine.database import Base, SessionLocal, engine  # noqa: E402
from rental_engine.models.asset import Asset, AssetStatus  # noqa: E402
from rental_engine.models.customer import Customer  # noqa: E402
from rental_engine.services.notification_service import NotificationSink, RentalNotifier  # noqa: E402
from rental_engine.services.rental_service import ReservationService  # noqa: E402
from rental_engine.utils.exceptions import NotificationError  # noqa: E402

NOW = datetime(2026, 3, 1, 8, 0, 0)


class RecordingSink(NotificationSink):
    target = "test"

    def __init__(self):
        self.sent = []

    def send(self, notification_type, payload):
        self.sent.append((notification_type, payload))


class FailingSink(NotificationSink):
    target = "test"

    def send(self, notification_type, payload):
        raise NotificationError("send", "sink unavailable")


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def failing_sink():
    return FailingSink()


@pytest.fixture()
def make_service(db, sink):
    def _make(session=None, notification_sink=None, now=NOW):
        session = session or db
        notifier = RentalNotifier(session, sink=notification_sink or sink)
        return ReservationService(session, notifier=notifier, now_provider=lambda: now)
    return _make


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def make_asset(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "brand": "Caterpillar",
            "model": "320",
            "year": 2021,
            "license_plate": f"EQ-{counter['n']:03d}",
            "asset_type": "excavator",
            "hourly_rate": Decimal("20.00"),
            "daily_rate": Decimal("100.00"),
            "weekly_rate": Decimal("600.00"),
            "monthly_rate": Decimal("2000.00"),
            "status": AssetStatus.AVAILABLE.value,
            "is_active": True,
            "current_hours": Decimal("1000"),
        }
        values.update(overrides)
        asset = Asset(**values)
        db.add(asset)
        db.commit()
        db.refresh(asset)
        return asset
    return _make


@pytest.fixture()
def make_customer(db):
    def _make(**overrides):
        values = {"full_name": "Dana Builder", "email": "dana@example.com", "is_active": True}
        values.update(overrides)
        customer = Customer(**values)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer
    return _make


@pytest.fixture()
def asset(make_asset):
    return make_asset()


@pytest.fixture()
def customer(make_customer):
    return make_customer()


@pytest.fixture()
def app(db, sink):
    from rental_engine.main import create_app

    flask_app = create_app(config_overrides={"TESTING": True}, notification_sink=sink, create_tables=False)
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
