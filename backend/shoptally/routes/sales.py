# Overview: Flask API routes for sales; parses input and returns JSON envelopes.

"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from . import SERVICE_ERRORS, error_response, internal_error
from ..decorators import require_auth
from ..services import sales_service
from ..validation import ValidationError, parse_id, parse_optional_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale (line items, or the legacy single-product body).

    201 -> {success, message, data: {saleId, totalSales, totalCogs, totalProfit, itemCount}}
    """
    try:
        sale = sales_service.create_sale(g.scope, request.get_json(silent=True))
        return jsonify({
            "success": True,
            "message": "Sale recorded successfully",
            "data": sales_service.sale_summary(sale),
        }), 201
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error()


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: startDate, endDate (inclusive days), productId, limit, offset."""
    try:
        product_id = request.args.get("productId")
        sales = sales_service.list_sales(
            g.scope,
            start=parse_optional_datetime(request.args.get("startDate"), "startDate"),
            end=parse_optional_datetime(request.args.get("endDate"), "endDate"),
            item_id=parse_id(product_id, "product ID") if product_id else None,
            limit=_int_arg("limit", 50),
            offset=_int_arg("offset", 0),
        )
        return jsonify({"success": True, "data": sales}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return internal_error()


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id):
    try:
        sale = sales_service.get_sale(g.scope, parse_id(sale_id, "sale ID"))
        return jsonify({"success": True, "data": sale}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch sale")
        return internal_error()


@sales_bp.put("/<sale_id>")
@require_auth
def update_sale_route(sale_id):
    """Replace a sale; stock moves by the difference between old and new lines."""
    try:
        sale = sales_service.update_sale(
            g.scope, parse_id(sale_id, "sale ID"), request.get_json(silent=True)
        )
        return jsonify({
            "success": True,
            "message": "Sale updated successfully",
            "data": sales_service.enrich_sale(sale),
        }), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return internal_error()


@sales_bp.delete("/<sale_id>")
@require_auth
def delete_sale_route(sale_id):
    try:
        sales_service.delete_sale(g.scope, parse_id(sale_id, "sale ID"))
        return jsonify({"success": True, "message": "Sale deleted successfully"}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return internal_error()
