# Overview: Flask API routes for dashboard and reports; read-only rollups returned as JSON.

from flask import Blueprint, request

from ..decorators import require_auth
from ..errors import GeneposError, error_response
from ..services import reporting_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api")


@dashboard_bp.get("/dashboard")
@require_auth
def dashboard_route(principal):
    """Today/month revenue and transactions, product counts, top 5 products this month."""
    try:
        return reporting_service.dashboard(principal)
    except GeneposError as e:
        return error_response(e)


@dashboard_bp.get("/reports/sales")
@require_auth
def sales_report_route(principal):
    """
    Completed sales report.

    Query params:
    - start_date, end_date: YYYY-MM-DD (both required to apply; end date inclusive)
    - period: today | week | month | year (used when the dates are not both given)
    """
    try:
        return reporting_service.sales_report(
            principal,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            period=request.args.get("period") or None,
        )
    except GeneposError as e:
        return error_response(e)
