from flask import Blueprint, jsonify, request, g, current_app

from . import SERVICE_ERRORS, error_response, internal_error
from ..decorators import require_auth
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _optional_int(name: str) -> int | None:
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise reporting_service.ReportError(f"{name} must be an integer")


@reports_bp.get("/summary")
@require_auth
def summary_report():
    try:
        report = reporting_service.period_report(
            g.scope,
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("groupBy", "day"),
        )
        return jsonify({"success": True, "data": report}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build summary report")
        return internal_error()


@reports_bp.get("/finance")
@require_auth
def finance_report():
    """viewType=monthly|yearly, year, month (1-12)."""
    try:
        report = reporting_service.finance_overview(
            g.scope,
            view_type=request.args.get("viewType", "monthly"),
            year=_optional_int("year"),
            month=_optional_int("month"),
        )
        return jsonify({"success": True, "data": report}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build finance overview")
        return internal_error()


@reports_bp.get("/trends")
@require_auth
def trends_report():
    try:
        months = _optional_int("months")
        report = reporting_service.sales_trends(g.scope, months=12 if months is None else months)
        return jsonify({"success": True, "data": report}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build trends report")
        return internal_error()
