"""
Rate and ledger arithmetic for rentals.

Durations are billed in units of the rate period (hour, day, 7-day week,
30-day month). Partial units round up and at least one unit is billed, so a
rental returned early on the day it started still pays one period.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, NamedTuple

from rental_engine.models.rental import RatePeriodType, Rental
from rental_engine.utils.exceptions import ValidationError
from rental_engine.utils.money import to_money

PERIOD_LENGTHS = {
    RatePeriodType.HOURLY: timedelta(hours=1),
    RatePeriodType.DAILY: timedelta(days=1),
    RatePeriodType.WEEKLY: timedelta(days=7),
    RatePeriodType.MONTHLY: timedelta(days=30),
}


class RentalAmounts(NamedTuple):
    subtotal: Decimal
    total_amount: Decimal
    units: int


def normalize_period_type(period_type: Any) -> RatePeriodType:
    if isinstance(period_type, RatePeriodType):
        return period_type
    try:
        return RatePeriodType(str(period_type or "").strip().lower())
    except ValueError:
        allowed = [p.value for p in RatePeriodType]
        raise ValidationError(
            f"Rate period type must be one of: {allowed}",
            field="rate_period_type",
            details={"allowed": allowed, "provided": period_type},
        )


def billing_units(period_type: Any, start: datetime, end: datetime) -> int:
    period = PERIOD_LENGTHS[normalize_period_type(period_type)]
    units, remainder = divmod(end - start, period)
    if remainder > timedelta(0):
        units += 1
    return max(int(units), 1)


def compute_amounts(
    rate: Any,
    period_type: Any,
    start: datetime,
    end: datetime,
    discount: Any = 0,
    tax: Any = 0
) -> RentalAmounts:
    units = billing_units(period_type, start, end)
    try:
        subtotal = to_money(to_money(rate) * units)
        total_amount = to_money(subtotal - to_money(discount) + to_money(tax))
    except ValueError:
        raise ValidationError(
            "Rental total is out of range",
            field="total_amount",
            details={"rate": str(rate), "units": units},
        )
    return RentalAmounts(subtotal=subtotal, total_amount=total_amount, units=units)


def recompute_pending(rental: Rental) -> Rental:
    rental.pending_amount = to_money(to_money(rental.total_amount) - to_money(rental.paid_amount))
    return rental


def recompute_totals(rental: Rental) -> Rental:
    """Re-derive subtotal/total/pending from the rental's effective window."""
    amounts = compute_amounts(
        rental.rate,
        rental.rate_period_type,
        rental.start_date,
        rental.actual_return_date or rental.estimated_return_date,
        rental.discount,
        rental.tax,
    )
    rental.subtotal = amounts.subtotal
    rental.total_amount = amounts.total_amount
    return recompute_pending(rental)


def apply_payment(rental: Rental, amount: Any) -> Rental:
    """Add a payment to the ledger. Overpayment is rejected, never clamped."""
    try:
        payment = to_money(amount)
    except ValueError:
        raise ValidationError("Payment amount must be a number", field="amount", details={"provided": str(amount)})

    if payment <= 0:
        raise ValidationError("Payment amount must be greater than zero", field="amount")

    paid = to_money(rental.paid_amount)
    total = to_money(rental.total_amount)
    if paid + payment > total:
        raise ValidationError(
            "Payment exceeds the outstanding balance",
            field="amount",
            details={
                "amount": str(payment),
                "paid_amount": str(paid),
                "total_amount": str(total),
                "pending_amount": str(to_money(total - paid)),
            },
        )

    rental.paid_amount = to_money(paid + payment)
    return recompute_pending(rental)
