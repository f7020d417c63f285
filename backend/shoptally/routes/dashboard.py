from flask import Blueprint, jsonify, g, current_app

from . import SERVICE_ERRORS, error_response, internal_error
from ..decorators import require_auth
from ..services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/metrics")
@require_auth
def metrics():
    """Today/7-day/30-day revenue and profit, low stock and top sellers for the active business."""
    try:
        return jsonify({"success": True, "data": reporting_service.dashboard_metrics(g.scope)}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build dashboard metrics")
        return internal_error()


@dashboard_bp.get("/overview")
@require_auth
def overview():
    """Figures for every business profile of the current user."""
    try:
        data = reporting_service.business_overview(g.current_user.id)
        return jsonify({"success": True, "data": data}), 200
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build business overview")
        return internal_error()
