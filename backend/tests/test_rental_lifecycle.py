from datetime import datetime
from decimal import Decimal

import pytest

from rental_engine.models.asset import AssetStatus
from rental_engine.models.rental import RentalStatus
from rental_engine.services.pricing_service import compute_amounts
from rental_engine.services.rental_lifecycle import VALID_TRANSITIONS, RentalLifecycle
from rental_engine.utils.exceptions import RentalConflictError, StatusTransitionError


def d(day: int) -> datetime:
    return datetime(2026, 3, day)


def _create(lifecycle, asset, customer, start, end):
    amounts = compute_amounts(Decimal("100"), "daily", start, end)
    return lifecycle.create(
        asset,
        customer_id=customer.id,
        start_date=start,
        estimated_return_date=end,
        rate=Decimal("100.00"),
        rate_period_type="daily",
        amounts=amounts,
        created_by="counter",
    )


def test_transition_table():
    assert VALID_TRANSITIONS[RentalStatus.PENDING] == [
        RentalStatus.ACTIVE, RentalStatus.COMPLETED, RentalStatus.CANCELLED
    ]
    assert VALID_TRANSITIONS[RentalStatus.ACTIVE] == [RentalStatus.COMPLETED, RentalStatus.CANCELLED]
    assert VALID_TRANSITIONS[RentalStatus.COMPLETED] == []
    assert VALID_TRANSITIONS[RentalStatus.CANCELLED] == []


@pytest.mark.parametrize(
    "from_status, to_status, allowed",
    [
        (RentalStatus.PENDING, RentalStatus.ACTIVE, True),
        (RentalStatus.ACTIVE, RentalStatus.PENDING, False),
        (RentalStatus.ACTIVE, RentalStatus.ACTIVE, False),
        (RentalStatus.COMPLETED, RentalStatus.CANCELLED, False),
        (RentalStatus.CANCELLED, RentalStatus.ACTIVE, False),
    ],
)
def test_is_valid_transition(db, from_status, to_status, allowed):
    assert RentalLifecycle(db).is_valid_transition(from_status, to_status) is allowed


def test_create_holds_asset_and_writes_audit_entry(db, asset, customer):
    lifecycle = RentalLifecycle(db)
    rental = _create(lifecycle, asset, customer, d(1), d(5))
    db.commit()

    assert rental.id
    assert rental.status == RentalStatus.PENDING.value
    assert rental.pending_amount == Decimal("400.00")
    assert asset.status == AssetStatus.RENTED.value

    history = lifecycle.audit.get_rental_history(rental.id)
    assert len(history) == 1
    assert history[0].action == "created"
    assert history[0].to_status == "pending"
    assert history[0].changed_by == "counter"
    assert history[0].details["units"] == 4


def test_create_rejects_overlap(db, asset, customer):
    lifecycle = RentalLifecycle(db)
    _create(lifecycle, asset, customer, d(1), d(5))
    db.commit()

    with pytest.raises(RentalConflictError):
        _create(lifecycle, asset, customer, d(4), d(6))


def test_terminal_transition_error_names_both_states(db, asset, customer):
    lifecycle = RentalLifecycle(db)
    rental = _create(lifecycle, asset, customer, d(1), d(5))
    lifecycle.cancel(rental, asset, reason="duplicate")
    db.commit()

    with pytest.raises(StatusTransitionError) as exc:
        lifecycle.activate(rental)

    assert exc.value.status_code == 409
    assert exc.value.details == {"current_status": "cancelled", "requested_status": "active"}
    assert "rental is closed" in exc.value.message


def test_release_leaves_operator_statuses_alone(db, make_asset, customer):
    asset = make_asset()
    lifecycle = RentalLifecycle(db)
    rental = _create(lifecycle, asset, customer, d(1), d(5))
    db.commit()

    asset.status = AssetStatus.MAINTENANCE.value
    db.commit()
    version = asset.version

    lifecycle.complete(rental, asset, d(5))
    db.commit()

    assert asset.status == AssetStatus.MAINTENANCE.value
    assert asset.version == version


def test_complete_appends_return_note(db, asset, customer):
    lifecycle = RentalLifecycle(db)
    rental = _create(lifecycle, asset, customer, d(1), d(5))
    rental.notes = "Deliver to north gate"
    lifecycle.complete(rental, asset, d(5), notes="Bucket teeth worn", final_condition="Good")
    db.commit()

    assert rental.notes == "Deliver to north gate\n\n[Return note] Bucket teeth worn"
    assert rental.final_condition == "Good"
