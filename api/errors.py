from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from services.errors import ServiceError, TransportError

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "VALIDATION",
    401: "AUTH_REQUIRED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION",
}


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Service-layer errors carry their own code and status; causes were logged where raised
    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        return error_response(err.error_code, err.message, err.status_code, details=err.details or None)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION", "Invalid input", 422, details=err.messages)

    # Unique constraints that slipped past the explicit checks (concurrent inserts)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logger.warning("integrity error: %s", getattr(err, "orig", err))
        message = str(getattr(err, "orig", err)).lower()
        if "unique" in message:
            return error_response("CONFLICT", "Resource already exists", 409)
        return error_response("DEPENDENCY_FAILURE", "A required service is unavailable", 503)

    # Store unavailable: log the cause, return a generic failure
    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(err: SQLAlchemyError):
        logger.exception("store failure", exc_info=err)
        return error_response("DEPENDENCY_FAILURE", "A required service is unavailable", 503)

    @app.errorhandler(TransportError)
    def handle_transport_error(err: TransportError):
        logger.exception("transport failure", exc_info=err)
        return error_response("DEPENDENCY_FAILURE", "A required service is unavailable", 503)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        return error_response(HTTP_ERROR_CODES.get(status, "BAD_REQUEST"), err.description, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
