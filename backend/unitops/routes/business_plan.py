# Overview: Flask API routes for business plans; parses input and returns JSON responses.

"""
Monthly business plans per unit.

- GET  /api/business-plan?year=&month=   plans of the session's units
- POST /api/business-plan                create or overwrite (unit, year, month)
- PUT  /api/business-plan                overwrite an existing plan, 404 otherwise
"""

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth
from ..services import business_plan_service
from .common import json_body, json_error


business_plan_bp = Blueprint("business_plan", __name__, url_prefix="/api/business-plan")


@business_plan_bp.get("")
@require_auth
def list_plans_route():
    try:
        plans = business_plan_service.list_plans(
            g.session_context,
            request.args.get("year"),
            request.args.get("month"),
        )
        return jsonify([plan.to_dict() for plan in plans]), 200
    except Exception as e:
        return json_error(e, "list business plans")


@business_plan_bp.post("")
@require_auth
def upsert_plan_route():
    try:
        plan, created = business_plan_service.upsert_plan(g.session_context, json_body())
        return jsonify(plan.to_dict()), 201 if created else 200
    except Exception as e:
        return json_error(e, "save business plan")


@business_plan_bp.put("")
@require_auth
def update_plan_route():
    try:
        plan = business_plan_service.update_plan(g.session_context, json_body())
        return jsonify(plan.to_dict()), 200
    except Exception as e:
        return json_error(e, "update business plan")
