"""Typed errors raised by the service layer and their JSON rendering.

Business code raises one of the classes below; the handlers registered by
:func:`register_error_handlers` turn them into the API error envelope.
"""
from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from collabotree.extensions import db


class CollaboTreeError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(CollaboTreeError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class Unauthorized(CollaboTreeError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class Forbidden(CollaboTreeError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFound(CollaboTreeError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(CollaboTreeError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InvalidState(CollaboTreeError):
    status_code = 409
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


def register_error_handlers(app):
    @app.errorhandler(CollaboTreeError)
    def handle_app_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        current_app.logger.warning(f"Integrity error: {error.orig}")
        return jsonify(Conflict().to_dict()), Conflict.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        payload = {
            "success": False,
            "error": error.description,
            "code": error.name.upper().replace(" ", "_"),
        }
        return jsonify(payload), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify(CollaboTreeError().to_dict()), 500
