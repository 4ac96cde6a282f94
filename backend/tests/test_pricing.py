from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from rental_engine.models.rental import Rental
from rental_engine.services.pricing_service import (
    apply_payment,
    billing_units,
    compute_amounts,
    normalize_period_type,
    recompute_totals,
)
from rental_engine.utils.exceptions import ValidationError
from rental_engine.utils.money import to_money

START = datetime(2026, 3, 1)


def _rental(**overrides) -> Rental:
    values = dict(
        start_date=START,
        estimated_return_date=START + timedelta(days=4),
        rate=Decimal("100.00"),
        rate_period_type="daily",
        discount=Decimal("0.00"),
        tax=Decimal("0.00"),
        subtotal=Decimal("400.00"),
        total_amount=Decimal("400.00"),
        paid_amount=Decimal("0.00"),
        pending_amount=Decimal("400.00"),
    )
    values.update(overrides)
    return Rental(**values)


@pytest.mark.parametrize(
    "period, delta, expected",
    [
        ("daily", timedelta(days=4), 4),
        ("daily", timedelta(days=4, hours=1), 5),
        ("daily", timedelta(hours=2), 1),
        ("hourly", timedelta(hours=3, minutes=1), 4),
        ("weekly", timedelta(days=7), 1),
        ("weekly", timedelta(days=8), 2),
        ("monthly", timedelta(days=30), 1),
        ("monthly", timedelta(days=31), 2),
    ],
)
def test_billing_units_round_up(period, delta, expected):
    assert billing_units(period, START, START + delta) == expected


def test_billing_units_bill_at_least_one_unit():
    assert billing_units("daily", START, START) == 1


def test_compute_amounts_applies_discount_and_tax():
    amounts = compute_amounts("100", "daily", START, START + timedelta(days=4), discount="50", tax="35.5")
    assert amounts.units == 4
    assert amounts.subtotal == Decimal("400.00")
    assert amounts.total_amount == Decimal("385.50")


def test_unknown_period_type_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        normalize_period_type("fortnightly")
    assert exc.value.field == "rate_period_type"


def test_recompute_totals_is_idempotent():
    rental = _rental(paid_amount=Decimal("150.00"))
    recompute_totals(rental)
    first = (rental.subtotal, rental.total_amount, rental.pending_amount)
    recompute_totals(rental)

    assert (rental.subtotal, rental.total_amount, rental.pending_amount) == first
    assert rental.pending_amount == Decimal("250.00")


def test_recompute_totals_uses_actual_return_date():
    rental = _rental(actual_return_date=START + timedelta(days=3))
    recompute_totals(rental)
    assert rental.total_amount == Decimal("300.00")


def test_apply_payment_updates_ledger():
    rental = _rental()
    apply_payment(rental, "150")
    assert rental.paid_amount == Decimal("150.00")
    assert rental.pending_amount == Decimal("250.00")

    apply_payment(rental, Decimal("250"))
    assert rental.pending_amount == Decimal("0.00")


@pytest.mark.parametrize("amount", [0, -10, "abc"])
def test_apply_payment_rejects_invalid_amounts(amount):
    rental = _rental()
    with pytest.raises(ValidationError) as exc:
        apply_payment(rental, amount)
    assert exc.value.field == "amount"
    assert rental.paid_amount == Decimal("0.00")


def test_apply_payment_rejects_overpayment():
    rental = _rental(paid_amount=Decimal("300.00"), pending_amount=Decimal("100.00"))
    with pytest.raises(ValidationError) as exc:
        apply_payment(rental, "100.01")

    assert exc.value.details["pending_amount"] == "100.00"
    assert rental.paid_amount == Decimal("300.00")


def test_to_money_rounds_half_up():
    assert to_money(0.1) == Decimal("0.10")
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(None) == Decimal("0.00")
    with pytest.raises(ValueError):
        to_money("not-a-number")


def test_to_money_rejects_amounts_outside_column_range():
    assert to_money("9999999999.99") == Decimal("9999999999.99")
    for value in ("1e30", Decimal("1e30"), "10000000000", "-10000000000"):
        with pytest.raises(ValueError):
            to_money(value)
    assert to_money(Decimal("1e12"), bounded=False) == Decimal("1000000000000.00")


def test_compute_amounts_rejects_total_out_of_range():
    start = datetime(2026, 3, 1)
    with pytest.raises(ValidationError) as exc:
        compute_amounts("9999999999", "daily", start, start + timedelta(days=2))

    assert exc.value.field == "total_amount"
