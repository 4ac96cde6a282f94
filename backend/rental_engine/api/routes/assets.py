from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from rental_engine.database import get_db
from rental_engine.schemas.asset import (
    AssetResponse,
    AssetStatusRequest,
    AssetUsageRequest,
    AvailabilityResponse,
)
from rental_engine.schemas.rental import RentalResponse
from rental_engine.services.asset_service import AssetService
from rental_engine.services.notification_service import RentalNotifier
from rental_engine.services.rental_service import ReservationService
from rental_engine.utils.exceptions import ValidationError
from rental_engine.utils.timezone import as_utc_naive


assets_bp = Blueprint("assets", __name__, url_prefix="/api/assets")


def _asset_json(asset):
    return AssetResponse.model_validate(asset).model_dump(mode="json")


@assets_bp.route("", methods=["GET"])
def list_assets():
    active_only = (request.args.get("active_only") or "").strip().lower() in {"1", "true", "yes"}
    with get_db() as db:
        assets = AssetService(db).list_assets(
            status=request.args.get("status"),
            asset_type=request.args.get("asset_type"),
            active_only=active_only,
            search=request.args.get("search"),
        )
        return jsonify([_asset_json(a) for a in assets])


@assets_bp.route("/available", methods=["GET"])
def list_available_assets():
    with get_db() as db:
        return jsonify([_asset_json(a) for a in AssetService(db).list_available_assets()])


@assets_bp.route("/maintenance-due", methods=["GET"])
def list_assets_needing_maintenance():
    days = request.args.get("days", type=int)
    with get_db() as db:
        assets = AssetService(db).list_assets_needing_maintenance(days=days)
        return jsonify([_asset_json(a) for a in assets])


@assets_bp.route("/<asset_id>", methods=["GET"])
def get_asset(asset_id: str):
    with get_db() as db:
        return jsonify(_asset_json(AssetService(db).get_asset(asset_id)))


@assets_bp.route("/<asset_id>/availability", methods=["GET"])
def check_availability(asset_id: str):
    """Availability of an asset for ?start_date=...&estimated_return_date=..."""
    start_date = request.args.get("start_date")
    estimated_return_date = request.args.get("estimated_return_date")
    exclude_rental_id = request.args.get("exclude_rental_id")

    with get_db() as db:
        notifier = RentalNotifier(db, sink=current_app.config.get("NOTIFICATION_SINK"))
        service = ReservationService(db, notifier=notifier)
        conflicts = service.list_conflicts(
            asset_id, start_date, estimated_return_date, exclude_rental_id=exclude_rental_id
        ).unwrap()
        response = AvailabilityResponse(
            asset_id=asset_id,
            start_date=as_utc_naive(start_date),
            estimated_return_date=as_utc_naive(estimated_return_date),
            available=not conflicts,
            conflicts=[RentalResponse.model_validate(r) for r in conflicts],
        )
        return jsonify(response.model_dump(mode="json"))


@assets_bp.route("/<asset_id>/rentals", methods=["GET"])
def list_asset_rentals(asset_id: str):
    with get_db() as db:
        notifier = RentalNotifier(db, sink=current_app.config.get("NOTIFICATION_SINK"))
        rentals = ReservationService(db, notifier=notifier).list_rentals_by_asset(asset_id).unwrap()
        return jsonify([RentalResponse.model_validate(r).model_dump(mode="json") for r in rentals])


@assets_bp.route("/<asset_id>/status", methods=["PATCH"])
def set_asset_status(asset_id: str):
    data = request.get_json(silent=True) or {}
    try:
        req = AssetStatusRequest(**data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid status request", details={"errors": exc.errors(include_context=False, include_input=False)})

    with get_db() as db:
        asset = AssetService(db).set_status(asset_id, req.status, changed_by=req.changed_by or request.headers.get("X-User"))
        return jsonify(_asset_json(asset))


@assets_bp.route("/<asset_id>/usage", methods=["POST"])
def record_asset_usage(asset_id: str):
    data = request.get_json(silent=True) or {}
    try:
        req = AssetUsageRequest(**data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid usage reading", details={"errors": exc.errors(include_context=False, include_input=False)})

    with get_db() as db:
        asset = AssetService(db).record_usage(asset_id, hours=req.hours, mileage=req.mileage)
        return jsonify(_asset_json(asset))
