"""
Reservation service: the transactional boundary for rental operations.

Every public method returns a ``ServiceResult``. Typed domain errors come
back as failures after the session is rolled back; stale version checks
become ``ConcurrencyError`` and anything unexpected is logged with the
operation name and the ids involved, then returned as ``ServerError``.

Commands commit exactly once. Notifications go out after the commit so a
sink failure can never undo a booking.
"""

import functools
import inspect
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from rental_engine.config import settings
from rental_engine.models.asset import Asset, AssetStatus
from rental_engine.models.audit_log import RentalAuditLog
from rental_engine.models.rental import PaymentMethod, Rental, RentalStatus
from rental_engine.repositories.asset_repository import AssetRepository
from rental_engine.repositories.customer_repository import CustomerRepository
from rental_engine.repositories.rental_repository import RentalRepository
from rental_engine.services.audit_service import AuditService
from rental_engine.services.availability_service import AvailabilityChecker
from rental_engine.services.notification_service import RentalNotifier
from rental_engine.services.pricing_service import (
    apply_payment,
    compute_amounts,
    normalize_period_type,
    recompute_totals,
)
from rental_engine.services.rental_lifecycle import RentalLifecycle
from rental_engine.utils.exceptions import (
    ConcurrencyError,
    NotFoundError,
    RentalApiError,
    RentalConflictError,
    ServerError,
    StatusTransitionError,
    ValidationError,
)
from rental_engine.utils.money import ZERO, to_decimal_or_none, to_money
from rental_engine.utils.result import PaginatedResult, ServiceResult
from rental_engine.utils.timezone import as_utc_naive, utcnow

logger = logging.getLogger(__name__)


def _id_context(signature: inspect.Signature, args: tuple, kwargs: dict) -> Dict[str, str]:
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    return {
        name: str(value)
        for name, value in bound.arguments.items()
        if name.endswith("_id") and value is not None
    }


def service_operation(operation: str, resource: str = "Rental", resource_key: str = "rental_id"):
    """Wrap a ReservationService method so it returns a ServiceResult."""
    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> ServiceResult:
            try:
                return ServiceResult.success(func(self, *args, **kwargs))
            except RentalApiError as e:
                self.db.rollback()
                logger.info(f"[{operation}] rejected: {e.code} - {e.message}")
                return ServiceResult.failure(e)
            except StaleDataError:
                self.db.rollback()
                context = _id_context(signature, (self,) + args, kwargs)
                logger.warning(f"[{operation}] concurrent modification detected: {context}")
                return ServiceResult.failure(ConcurrencyError(resource, context.get(resource_key)))
            except SQLAlchemyError as e:
                self.db.rollback()
                context = _id_context(signature, (self,) + args, kwargs)
                logger.error(f"[{operation}] database error {context}: {e}", exc_info=True)
                return ServiceResult.failure(ServerError(operation, "database error", details=context))
            except Exception as e:
                self.db.rollback()
                context = _id_context(signature, (self,) + args, kwargs)
                logger.error(f"[{operation}] unexpected error {context}: {e}", exc_info=True)
                return ServiceResult.failure(ServerError(operation, "unexpected error", details=context))
        return wrapper
    return decorator


class ReservationService:
    def __init__(
        self,
        db: Session,
        notifier: Optional[RentalNotifier] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.rentals = RentalRepository(db)
        self.assets = AssetRepository(db)
        self.customers = CustomerRepository(db)
        self.availability = AvailabilityChecker(db, self.rentals)
        self.audit = AuditService(db)
        self.lifecycle = RentalLifecycle(db, self.availability, self.rentals, self.audit)
        self.notifier = notifier or RentalNotifier(db)
        self._now = now_provider or utcnow

    # Input helpers

    def _parse_date(self, value: Any, field: str) -> datetime:
        if value is None:
            raise ValidationError(f"{field} is required", field=field)
        try:
            return as_utc_naive(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid date for {field}", field=field, details={"provided": str(value)})

    def _parse_window(self, start_date: Any, estimated_return_date: Any):
        start = self._parse_date(start_date, "start_date")
        end = self._parse_date(estimated_return_date, "estimated_return_date")
        if end <= start:
            raise ValidationError(
                "Estimated return date must be after the start date",
                field="estimated_return_date",
                details={"start_date": start.isoformat(), "estimated_return_date": end.isoformat()},
            )
        return start, end

    def _amount(self, value: Any, field: str, allow_zero: bool = True) -> Decimal:
        try:
            amount = to_money(value)
        except ValueError:
            raise ValidationError(f"{field} must be a number", field=field, details={"provided": str(value)})
        if amount < 0 or (not allow_zero and amount == 0):
            qualifier = "zero or greater" if allow_zero else "greater than zero"
            raise ValidationError(f"{field} must be {qualifier}", field=field)
        return amount

    def _reading(self, value: Any, field: str) -> Optional[Decimal]:
        try:
            return to_decimal_or_none(value)
        except ValueError:
            raise ValidationError(f"{field} must be a number", field=field, details={"provided": str(value)})

    def _payment_method(self, value: Any) -> str:
        if isinstance(value, PaymentMethod):
            return value.value
        try:
            return PaymentMethod(str(value or PaymentMethod.CASH.value).strip().lower()).value
        except ValueError:
            allowed = [m.value for m in PaymentMethod]
            raise ValidationError(
                f"Payment method must be one of: {allowed}",
                field="payment_method",
                details={"allowed": allowed, "provided": value},
            )

    def _parse_status(self, value: Any) -> Optional[RentalStatus]:
        if value is None or value == "":
            return None
        if isinstance(value, RentalStatus):
            return value
        try:
            return RentalStatus(str(value).strip().lower())
        except ValueError:
            allowed = [s.value for s in RentalStatus]
            raise ValidationError(
                f"Status must be one of: {allowed}",
                field="status",
                details={"allowed": allowed, "provided": value},
            )

    def _ensure_rentable(self, asset: Asset) -> None:
        if not asset.is_active:
            raise ValidationError("Asset is not active", field="asset_id", details={"asset_id": asset.id})
        if asset.status in (AssetStatus.MAINTENANCE.value, AssetStatus.RETIRED.value):
            raise ValidationError(
                f"Asset is in {asset.status} and cannot be rented",
                field="asset_id",
                details={"asset_id": asset.id, "asset_status": asset.status},
            )

    def _require_rental(self, rental_id: str, for_update: bool = False) -> Rental:
        rental = self.rentals.get_by_id(rental_id, for_update=for_update)
        if not rental:
            raise NotFoundError("Rental", rental_id)
        return rental

    def _require_asset(self, asset_id: str, for_update: bool = False) -> Asset:
        asset = self.assets.get_for_update(asset_id) if for_update else self.assets.get_by_id(asset_id)
        if not asset:
            raise NotFoundError("Asset", asset_id)
        return asset

    def _notify(self, send: Callable[[Rental], Any], rental: Rental) -> None:
        """Run a notifier call after commit; storage errors here are logged, not raised."""
        try:
            send(rental)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record notification for rental {rental.id}: {e}", exc_info=True)

    # Commands

    @service_operation("create_rental", resource="Asset", resource_key="asset_id")
    def create_rental(
        self,
        customer_id: str,
        asset_id: str,
        start_date: Any,
        estimated_return_date: Any,
        rate: Any = None,
        rate_period_type: Any = "daily",
        deposit: Any = 0,
        discount: Any = 0,
        tax: Any = 0,
        payment_method: Any = "cash",
        pickup_location: Optional[str] = None,
        return_location: Optional[str] = None,
        initial_hours: Any = None,
        initial_mileage: Any = None,
        initial_condition: Optional[str] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Rental:
        start, end = self._parse_window(start_date, estimated_return_date)
        period = normalize_period_type(rate_period_type)
        deposit_amount = self._amount(deposit, "deposit")
        discount_amount = self._amount(discount, "discount")
        tax_amount = self._amount(tax, "tax")
        method = self._payment_method(payment_method)
        hours = self._reading(initial_hours, "initial_hours")
        mileage = self._reading(initial_mileage, "initial_mileage")

        customer = self.customers.get_by_id(customer_id)
        if not customer:
            raise NotFoundError("Customer", customer_id)
        if not customer.is_active:
            raise ValidationError("Customer is not active", field="customer_id", details={"customer_id": customer_id})

        asset = self._require_asset(asset_id, for_update=True)
        self._ensure_rentable(asset)

        if rate is None:
            rate_amount = to_money(asset.rate_for(period.value))
            if rate_amount <= 0:
                raise ValidationError(
                    f"Asset has no {period.value} rate; provide one explicitly",
                    field="rate",
                )
        else:
            rate_amount = self._amount(rate, "rate", allow_zero=False)

        amounts = compute_amounts(rate_amount, period, start, end, discount_amount, tax_amount)
        if amounts.total_amount < 0:
            raise ValidationError(
                "Discount cannot exceed subtotal plus tax",
                field="discount",
                details={"subtotal": str(amounts.subtotal), "discount": str(discount_amount), "tax": str(tax_amount)},
            )

        rental = self.lifecycle.create(
            asset,
            customer_id=customer.id,
            start_date=start,
            estimated_return_date=end,
            rate=rate_amount,
            rate_period_type=period.value,
            amounts=amounts,
            deposit=deposit_amount,
            discount=discount_amount,
            tax=tax_amount,
            payment_method=method,
            pickup_location=pickup_location,
            return_location=return_location,
            initial_hours=hours,
            initial_mileage=mileage,
            initial_condition=initial_condition,
            notes=notes,
            created_by=created_by,
        )
        self.db.commit()
        self.db.refresh(rental)
        logger.info(
            f"Rental {rental.id} created for asset {asset_id} "
            f"({start.isoformat()} -> {end.isoformat()}, total {rental.total_amount})"
        )

        self._notify(self.notifier.notify_rental_confirmed, rental)
        return rental

    @service_operation("update_rental")
    def update_rental(
        self,
        rental_id: str,
        start_date: Any = None,
        estimated_return_date: Any = None,
        rate: Any = None,
        rate_period_type: Any = None,
        deposit: Any = None,
        discount: Any = None,
        tax: Any = None,
        payment_method: Any = None,
        pickup_location: Optional[str] = None,
        return_location: Optional[str] = None,
        notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> Rental:
        """Edit an outstanding rental. Omitted (None) fields are left unchanged."""
        rental = self._require_rental(rental_id, for_update=True)
        self.lifecycle.ensure_outstanding(rental, "updated")

        changes: Dict[str, Any] = {}

        new_start = rental.start_date if start_date is None else start_date
        new_end = rental.estimated_return_date if estimated_return_date is None else estimated_return_date
        start, end = self._parse_window(new_start, new_end)
        window_changed = start != rental.start_date or end != rental.estimated_return_date
        if window_changed:
            conflicting = self.availability.conflicts(rental.asset_id, start, end, exclude_rental_id=rental.id)
            if conflicting:
                raise RentalConflictError(rental.asset_id, [r.id for r in conflicting])
            asset = self._require_asset(rental.asset_id, for_update=True)
            self.lifecycle.touch_asset(asset)
            changes["start_date"] = [rental.start_date.isoformat(), start.isoformat()]
            changes["estimated_return_date"] = [rental.estimated_return_date.isoformat(), end.isoformat()]
            rental.start_date = start
            rental.estimated_return_date = end

        if rate is not None:
            rental.rate = self._amount(rate, "rate", allow_zero=False)
            changes["rate"] = str(rental.rate)
        if rate_period_type is not None:
            rental.rate_period_type = normalize_period_type(rate_period_type).value
            changes["rate_period_type"] = rental.rate_period_type
        if deposit is not None:
            rental.deposit = self._amount(deposit, "deposit")
            changes["deposit"] = str(rental.deposit)
        if discount is not None:
            rental.discount = self._amount(discount, "discount")
            changes["discount"] = str(rental.discount)
        if tax is not None:
            rental.tax = self._amount(tax, "tax")
            changes["tax"] = str(rental.tax)
        if payment_method is not None:
            rental.payment_method = self._payment_method(payment_method)
            changes["payment_method"] = rental.payment_method
        if pickup_location is not None:
            rental.pickup_location = pickup_location
        if return_location is not None:
            rental.return_location = return_location
        if notes is not None:
            rental.notes = notes

        recompute_totals(rental)
        if to_money(rental.total_amount) < 0:
            raise ValidationError("Discount cannot exceed subtotal plus tax", field="discount")
        if to_money(rental.total_amount) < to_money(rental.paid_amount):
            raise ValidationError(
                "New total would fall below the amount already paid",
                field="total_amount",
                details={"total_amount": str(rental.total_amount), "paid_amount": str(rental.paid_amount)},
            )

        self.audit.log_rental_action(rental, "updated", changed_by=changed_by, details=changes or None)
        self.db.commit()
        self.db.refresh(rental)
        logger.info(f"Rental {rental_id} updated: {sorted(changes)}")
        return rental

    @service_operation("activate_rental")
    def activate_rental(self, rental_id: str, changed_by: Optional[str] = None) -> Rental:
        rental = self._require_rental(rental_id, for_update=True)
        self.lifecycle.activate(rental, changed_by=changed_by)
        self.db.commit()
        self.db.refresh(rental)
        logger.info(f"Rental {rental_id} activated")
        return rental

    @service_operation("complete_rental")
    def complete_rental(
        self,
        rental_id: str,
        return_date: Any = None,
        final_hours: Any = None,
        final_mileage: Any = None,
        final_condition: Optional[str] = None,
        deposit_returned: bool = False,
        notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> Rental:
        rental = self._require_rental(rental_id, for_update=True)
        returned_at = self._now() if return_date is None else self._parse_date(return_date, "return_date")
        asset = self.assets.get_for_update(rental.asset_id)

        try:
            self.lifecycle.complete(
                rental,
                asset,
                returned_at,
                final_hours=final_hours,
                final_mileage=final_mileage,
                final_condition=final_condition,
                deposit_returned=deposit_returned,
                notes=notes,
                changed_by=changed_by,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        self.db.commit()
        self.db.refresh(rental)
        logger.info(
            f"Rental {rental_id} completed: {rental.duration_in_days} day(s), "
            f"total {rental.total_amount}, pending {rental.pending_amount}"
        )

        self._notify(self.notifier.notify_rental_completed, rental)
        return rental

    @service_operation("cancel_rental")
    def cancel_rental(
        self,
        rental_id: str,
        reason: str,
        return_deposit: bool = False,
        changed_by: Optional[str] = None,
    ) -> Rental:
        rental = self._require_rental(rental_id, for_update=True)
        asset = self.assets.get_for_update(rental.asset_id)
        self.lifecycle.cancel(rental, asset, reason, return_deposit=return_deposit, changed_by=changed_by)
        self.db.commit()
        self.db.refresh(rental)
        logger.info(f"Rental {rental_id} cancelled: {rental.cancellation_reason}")

        self._notify(self.notifier.notify_rental_cancelled, rental)
        return rental

    @service_operation("record_payment")
    def record_payment(self, rental_id: str, amount: Any, changed_by: Optional[str] = None) -> Rental:
        rental = self._require_rental(rental_id, for_update=True)
        if rental.status == RentalStatus.CANCELLED.value:
            raise StatusTransitionError(rental.status, "payment", "the ledger of a cancelled rental is frozen")

        previous_paid = to_money(rental.paid_amount)
        apply_payment(rental, amount)

        self.audit.log_rental_action(
            rental,
            "payment_recorded",
            changed_by=changed_by,
            details={
                "amount": str(to_money(rental.paid_amount) - previous_paid),
                "paid_amount": str(rental.paid_amount),
                "pending_amount": str(rental.pending_amount),
            },
        )
        self.db.commit()
        self.db.refresh(rental)
        logger.info(f"Payment recorded for rental {rental_id}: paid {rental.paid_amount}, pending {rental.pending_amount}")
        return rental

    @service_operation("return_deposit")
    def return_deposit(self, rental_id: str, changed_by: Optional[str] = None) -> Rental:
        rental = self._require_rental(rental_id, for_update=True)
        if rental.is_outstanding:
            raise StatusTransitionError(rental.status, "deposit_returned", "the deposit is held until the rental is closed")
        if rental.deposit_returned:
            return rental

        rental.deposit_returned = True
        self.audit.log_rental_action(
            rental, "deposit_returned",
            changed_by=changed_by,
            details={"deposit": str(rental.deposit)},
        )
        self.db.commit()
        self.db.refresh(rental)
        logger.info(f"Deposit returned for rental {rental_id}")
        return rental

    @service_operation("delete_rental")
    def delete_rental(self, rental_id: str, changed_by: Optional[str] = None) -> None:
        rental = self._require_rental(rental_id, for_update=True)
        if rental.is_outstanding:
            raise StatusTransitionError(rental.status, "deleted", "outstanding rentals must be completed or cancelled first")

        self.audit.log_rental_action(
            rental, "deleted",
            from_status=rental.status,
            changed_by=changed_by,
        )
        self.rentals.delete(rental)
        self.db.commit()
        logger.info(f"Rental {rental_id} deleted")
        return None

    @service_operation("send_return_reminders")
    def send_return_reminders(self, days: Optional[int] = None) -> Dict[str, int]:
        now = self._now()
        horizon = settings.upcoming_returns_days if days is None else days
        counts = {"return_reminders": 0, "overdue_reminders": 0, "skipped": 0}

        for rental in self.rentals.list_upcoming_returns(now, horizon):
            sent = self.notifier.notify_return_reminder(rental, overdue=False, now=now)
            counts["return_reminders" if sent else "skipped"] += 1
        for rental in self.rentals.list_overdue(now):
            sent = self.notifier.notify_return_reminder(rental, overdue=True, now=now)
            counts["overdue_reminders" if sent else "skipped"] += 1

        logger.info(f"Return reminders processed: {counts}")
        return counts

    # Queries

    @service_operation("get_rental")
    def get_rental(self, rental_id: str) -> Rental:
        return self._require_rental(rental_id)

    @service_operation("get_rental_with_details")
    def get_rental_with_details(self, rental_id: str) -> Rental:
        rental = self.rentals.get_by_id_with_details(rental_id)
        if not rental:
            raise NotFoundError("Rental", rental_id)
        return rental

    @service_operation("get_rental_history")
    def get_rental_history(self, rental_id: str) -> List[RentalAuditLog]:
        return self.audit.get_rental_history(rental_id)

    @service_operation("list_rentals_by_customer")
    def list_rentals_by_customer(self, customer_id: str) -> List[Rental]:
        return self.rentals.list_by_customer(customer_id)

    @service_operation("list_rentals_by_asset")
    def list_rentals_by_asset(self, asset_id: str) -> List[Rental]:
        return self.rentals.list_by_asset(asset_id)

    @service_operation("list_rentals_by_status")
    def list_rentals_by_status(self, status: Any) -> List[Rental]:
        parsed = self._parse_status(status)
        if parsed is None:
            raise ValidationError("status is required", field="status")
        return self.rentals.list_by_status(parsed)

    @service_operation("list_rentals_by_date_range")
    def list_rentals_by_date_range(self, start: Any, end: Any) -> List[Rental]:
        range_start = self._parse_date(start, "start")
        range_end = self._parse_date(end, "end")
        if range_end < range_start:
            raise ValidationError("end must not be before start", field="end")
        return self.rentals.list_by_date_range(range_start, range_end)

    @service_operation("list_rentals")
    def list_rentals(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        customer_id: Optional[str] = None,
        asset_id: Optional[str] = None,
        status: Any = None,
        start_from: Any = None,
        start_to: Any = None,
        with_details: bool = False,
    ) -> PaginatedResult[Rental]:
        page = max(int(page or 1), 1)
        size = settings.default_page_size if page_size is None else int(page_size)
        size = min(max(size, 1), settings.max_page_size)

        items, total = self.rentals.list_paged(
            page=page,
            page_size=size,
            customer_id=customer_id,
            asset_id=asset_id,
            status=self._parse_status(status),
            start_from=self._parse_date(start_from, "start_from") if start_from else None,
            start_to=self._parse_date(start_to, "start_to") if start_to else None,
            with_details=with_details,
        )
        return PaginatedResult(items=items, total=total, page=page, page_size=size)

    @service_operation("list_overdue_rentals")
    def list_overdue_rentals(self) -> List[Rental]:
        return self.rentals.list_overdue(self._now())

    @service_operation("list_upcoming_returns")
    def list_upcoming_returns(self, days: Optional[int] = None) -> List[Rental]:
        horizon = settings.upcoming_returns_days if days is None else int(days)
        if horizon < 0:
            raise ValidationError("days must be zero or greater", field="days")
        return self.rentals.list_upcoming_returns(self._now(), horizon)

    @service_operation("check_availability", resource="Asset", resource_key="asset_id")
    def check_availability(
        self,
        asset_id: str,
        start_date: Any,
        estimated_return_date: Any,
        exclude_rental_id: Optional[str] = None,
    ) -> bool:
        start, end = self._parse_window(start_date, estimated_return_date)
        self._require_asset(asset_id)
        return self.availability.is_available(asset_id, start, end, exclude_rental_id=exclude_rental_id)

    @service_operation("list_conflicts", resource="Asset", resource_key="asset_id")
    def list_conflicts(
        self,
        asset_id: str,
        start_date: Any,
        estimated_return_date: Any,
        exclude_rental_id: Optional[str] = None,
    ) -> List[Rental]:
        start, end = self._parse_window(start_date, estimated_return_date)
        self._require_asset(asset_id)
        return self.availability.conflicts(asset_id, start, end, exclude_rental_id=exclude_rental_id)

    @service_operation("get_revenue")
    def get_revenue(self, start: Any = None, end: Any = None) -> Decimal:
        """Revenue of completed rentals starting inside [start, end]; defaults to the last 30 days"""
        range_end = self._now() if end is None else self._parse_date(end, "end")
        range_start = range_end - timedelta(days=30) if start is None else self._parse_date(start, "start")
        if range_end < range_start:
            raise ValidationError("end must not be before start", field="end")
        return to_money(self.rentals.total_revenue(range_start, range_end), bounded=False)

    @service_operation("get_pending_payments_total")
    def get_pending_payments_total(self) -> Decimal:
        return to_money(self.rentals.pending_payments_total() or ZERO, bounded=False)
