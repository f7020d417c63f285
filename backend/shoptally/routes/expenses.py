# Overview: Flask API routes for business expenses.

from flask import Blueprint, request, jsonify, g, current_app

from . import SERVICE_ERRORS, error_response, internal_error
from ..decorators import require_auth
from ..services import expense_service
from ..validation import parse_id, parse_optional_datetime


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.post("")
@require_auth
def create_expense_route():
    try:
        expense = expense_service.create_expense(g.scope, request.get_json(silent=True))
        return jsonify({
            "success": True,
            "message": "Expense created successfully",
            "data": expense.to_dict(),
        }), 201
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return internal_error()


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    """Query params: startDate, endDate (inclusive days), category ('all' = any)."""
    try:
        expenses = expense_service.list_expenses(
            g.scope,
            start=parse_optional_datetime(request.args.get("startDate"), "startDate"),
            end=parse_optional_datetime(request.args.get("endDate"), "endDate"),
            category=request.args.get("category"),
        )
        return jsonify({"success": True, "data": [e.to_dict() for e in expenses]}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return internal_error()


@expenses_bp.get("/<expense_id>")
@require_auth
def get_expense_route(expense_id):
    try:
        expense = expense_service.get_expense(g.scope, parse_id(expense_id, "expense ID"))
        return jsonify({"success": True, "data": expense.to_dict()}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch expense")
        return internal_error()


@expenses_bp.put("/<expense_id>")
@require_auth
def update_expense_route(expense_id):
    try:
        expense = expense_service.update_expense(
            g.scope, parse_id(expense_id, "expense ID"), request.get_json(silent=True)
        )
        return jsonify({
            "success": True,
            "message": "Expense updated successfully",
            "data": expense.to_dict(),
        }), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return internal_error()


@expenses_bp.delete("/<expense_id>")
@require_auth
def delete_expense_route(expense_id):
    try:
        expense_service.delete_expense(g.scope, parse_id(expense_id, "expense ID"))
        return jsonify({"success": True, "message": "Expense deleted successfully"}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return internal_error()
