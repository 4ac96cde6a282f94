from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from rental_engine.schemas.error import ErrorResponse
from rental_engine.utils.exceptions import RentalApiError
import logging
import uuid

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, field=None, details=None):
    body = ErrorResponse(
        error={
            "code": code,
            "message": message,
            "field": field,
            "details": details,
        },
        request_id=str(uuid.uuid4())
    )
    return jsonify(body.model_dump(mode="json")), status_code


def register_error_handlers(app: Flask) -> None:
    """Convert exceptions raised by routes into structured error responses."""

    @app.errorhandler(RentalApiError)
    def handle_rental_api_error(e: RentalApiError):
        if e.status_code >= 500:
            logger.error(f"Rental API Error: {e.code} - {e.message}")
        else:
            logger.warning(f"Rental API Error: {e.code} - {e.message}")
        return _error_response(e.status_code, e.code, e.message, e.field, e.details)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        logger.warning(f"HTTP Exception: {e.code} - {e.description}")
        return _error_response(
            e.code or 500,
            "HTTP_EXCEPTION",
            e.description,
            details={"status_code": e.code},
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        # Catch-all for unexpected errors
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return _error_response(
            500,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"error_type": type(e).__name__},
        )
