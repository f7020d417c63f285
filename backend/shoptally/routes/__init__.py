# Overview: Shared JSON envelope for API blueprints.

from flask import jsonify

from ..validation import (
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)

# Exceptions a route maps to a specific status; anything else is a logged 500
SERVICE_ERRORS = (ValidationError, ConflictError, NotFoundError, StorageUnavailableError)


def error_response(exc: Exception):
    """
    {success: false, error} with the status for a service exception.

    Insufficient stock is a 400 with the shortfall under `details`.
    """
    if isinstance(exc, NotFoundError):
        return jsonify({"success": False, "error": str(exc)}), 404
    if isinstance(exc, StorageUnavailableError):
        return jsonify({"success": False, "error": str(exc)}), 503
    if isinstance(exc, ConflictError):
        return jsonify({"success": False, "error": str(exc), "details": exc.details}), 400
    return jsonify({"success": False, "error": str(exc)}), 400


def internal_error():
    return jsonify({"success": False, "error": "Internal server error"}), 500
