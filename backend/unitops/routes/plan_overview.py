# Overview: Flask API route for the budget-vs-actual overview.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import plan_overview_service
from .common import date_arg, json_error, unit_ids_arg


plan_overview_bp = Blueprint("plan_overview", __name__, url_prefix="/api/plan-overview")


@plan_overview_bp.get("")
@require_auth
def plan_overview_route():
    """
    Budget vs actual for a set of units.

    Query: unit_ids (repeated or comma separated), date_from, date_to (ISO dates).
    The budget side comes from the month of date_from only.
    """
    try:
        result = plan_overview_service.compute_plan_overview(
            g.session_context,
            unit_ids_arg(),
            date_arg("date_from"),
            date_arg("date_to"),
        )
        return jsonify(result), 200
    except Exception as e:
        return json_error(e, "compute plan overview")
