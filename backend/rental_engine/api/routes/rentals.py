from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from rental_engine.database import get_db
from rental_engine.schemas.rental import (
    CancelRentalRequest,
    CompleteRentalRequest,
    CreateRentalRequest,
    PagedRentalResponse,
    PaymentRequest,
    ReminderRunResponse,
    RentalAuditLogResponse,
    RentalDetailResponse,
    RentalResponse,
    UpdateRentalRequest,
)
from rental_engine.services.notification_service import RentalNotifier
from rental_engine.services.rental_service import ReservationService
from rental_engine.utils.exceptions import ValidationError


rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")


def _service(db) -> ReservationService:
    notifier = RentalNotifier(db, sink=current_app.config.get("NOTIFICATION_SINK"))
    return ReservationService(db, notifier=notifier)


def _parse(model, message: str):
    data = request.get_json(silent=True) or {}
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise ValidationError(message, details={"errors": exc.errors(include_context=False, include_input=False)})


def _rental_json(rental):
    return RentalResponse.model_validate(rental).model_dump(mode="json")


@rentals_bp.route("", methods=["POST"])
def create_rental():
    req = _parse(CreateRentalRequest, "Invalid rental request")
    changed_by = request.headers.get("X-User")

    with get_db() as db:
        rental = _service(db).create_rental(
            customer_id=req.customer_id,
            asset_id=req.asset_id,
            start_date=req.start_date,
            estimated_return_date=req.estimated_return_date,
            rate=req.rate,
            rate_period_type=req.rate_period_type.value,
            deposit=req.deposit,
            discount=req.discount,
            tax=req.tax,
            payment_method=req.payment_method.value,
            pickup_location=req.pickup_location,
            return_location=req.return_location,
            initial_hours=req.initial_hours,
            initial_mileage=req.initial_mileage,
            initial_condition=req.initial_condition,
            notes=req.notes,
            created_by=changed_by,
        ).unwrap()
        return jsonify(_rental_json(rental)), 201


@rentals_bp.route("", methods=["GET"])
def list_rentals():
    """List rentals (paged, newest first)."""
    page = request.args.get("page", type=int) or 1
    page_size = request.args.get("page_size", type=int)

    with get_db() as db:
        result = _service(db).list_rentals(
            page=page,
            page_size=page_size,
            customer_id=request.args.get("customer_id"),
            asset_id=request.args.get("asset_id"),
            status=request.args.get("status"),
            start_from=request.args.get("start_from"),
            start_to=request.args.get("start_to"),
            with_details=True,
        ).unwrap()
        response = PagedRentalResponse(
            items=[RentalDetailResponse.model_validate(r) for r in result.items],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            has_next=result.has_next,
            has_previous=result.has_previous,
        )
        return jsonify(response.model_dump(mode="json"))


@rentals_bp.route("/overdue", methods=["GET"])
def list_overdue_rentals():
    with get_db() as db:
        rentals = _service(db).list_overdue_rentals().unwrap()
        return jsonify([RentalDetailResponse.model_validate(r).model_dump(mode="json") for r in rentals])


@rentals_bp.route("/upcoming-returns", methods=["GET"])
def list_upcoming_returns():
    days = request.args.get("days", type=int)
    with get_db() as db:
        rentals = _service(db).list_upcoming_returns(days=days).unwrap()
        return jsonify([RentalDetailResponse.model_validate(r).model_dump(mode="json") for r in rentals])


@rentals_bp.route("/reminders", methods=["POST"])
def send_return_reminders():
    days = request.args.get("days", type=int)
    with get_db() as db:
        counts = _service(db).send_return_reminders(days=days).unwrap()
        return jsonify(ReminderRunResponse(**counts).model_dump())


@rentals_bp.route("/<rental_id>", methods=["GET"])
def get_rental(rental_id: str):
    with get_db() as db:
        rental = _service(db).get_rental_with_details(rental_id).unwrap()
        return jsonify(RentalDetailResponse.model_validate(rental).model_dump(mode="json"))


@rentals_bp.route("/<rental_id>", methods=["PATCH"])
def update_rental(rental_id: str):
    req = _parse(UpdateRentalRequest, "Invalid rental update")

    with get_db() as db:
        rental = _service(db).update_rental(
            rental_id,
            start_date=req.start_date,
            estimated_return_date=req.estimated_return_date,
            rate=req.rate,
            rate_period_type=req.rate_period_type.value if req.rate_period_type else None,
            deposit=req.deposit,
            discount=req.discount,
            tax=req.tax,
            payment_method=req.payment_method.value if req.payment_method else None,
            pickup_location=req.pickup_location,
            return_location=req.return_location,
            notes=req.notes,
            changed_by=request.headers.get("X-User"),
        ).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>", methods=["DELETE"])
def delete_rental(rental_id: str):
    with get_db() as db:
        _service(db).delete_rental(rental_id, changed_by=request.headers.get("X-User")).unwrap()
        return "", 204


@rentals_bp.route("/<rental_id>/activate", methods=["POST"])
def activate_rental(rental_id: str):
    with get_db() as db:
        rental = _service(db).activate_rental(rental_id, changed_by=request.headers.get("X-User")).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>/complete", methods=["POST"])
def complete_rental(rental_id: str):
    req = _parse(CompleteRentalRequest, "Invalid completion request")

    with get_db() as db:
        rental = _service(db).complete_rental(
            rental_id,
            return_date=req.return_date,
            final_hours=req.final_hours,
            final_mileage=req.final_mileage,
            final_condition=req.final_condition,
            deposit_returned=req.deposit_returned,
            notes=req.notes,
            changed_by=request.headers.get("X-User"),
        ).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>/cancel", methods=["POST"])
def cancel_rental(rental_id: str):
    req = _parse(CancelRentalRequest, "Invalid cancellation request")

    with get_db() as db:
        rental = _service(db).cancel_rental(
            rental_id,
            reason=req.reason,
            return_deposit=req.return_deposit,
            changed_by=request.headers.get("X-User"),
        ).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>/payments", methods=["POST"])
def record_payment(rental_id: str):
    req = _parse(PaymentRequest, "Invalid payment request")

    with get_db() as db:
        rental = _service(db).record_payment(
            rental_id,
            req.amount,
            changed_by=request.headers.get("X-User"),
        ).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>/deposit-return", methods=["POST"])
def return_deposit(rental_id: str):
    with get_db() as db:
        rental = _service(db).return_deposit(rental_id, changed_by=request.headers.get("X-User")).unwrap()
        return jsonify(_rental_json(rental))


@rentals_bp.route("/<rental_id>/history", methods=["GET"])
def get_rental_history(rental_id: str):
    with get_db() as db:
        entries = _service(db).get_rental_history(rental_id).unwrap()
        return jsonify([RentalAuditLogResponse.model_validate(e).model_dump(mode="json") for e in entries])
