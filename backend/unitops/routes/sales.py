# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales entry and lifecycle API

- GET  /api/sales?unit_id=            open sales of a unit
- POST /api/sales                     record a sale
- PUT  /api/sales/<id>                edit amount / payment type of an open sale
- GET  /api/sales/overview            sales of several units in a date range
- POST /api/sales/confirm             confirm a batch (all-or-nothing)
- POST /api/sales/<id>/unlock         reopen a confirmed sale
"""

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import sales_service
from .common import date_range_args, int_arg, json_body, json_error, unit_ids_arg


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_open_sales_route():
    try:
        sales = sales_service.list_open_sales(g.session_context, int_arg("unit_id"))
        return jsonify([sale.to_dict() for sale in sales]), 200
    except Exception as e:
        return json_error(e, "list sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    try:
        sale = sales_service.create_sale(g.session_context, json_body())
        return jsonify(sale.to_dict()), 201
    except Exception as e:
        return json_error(e, "create sale")


@sales_bp.put("/<int:sale_id>")
@require_auth
def edit_sale_route(sale_id: int):
    try:
        sale = sales_service.edit_sale(g.session_context, sale_id, json_body())
        return jsonify(sale.to_dict()), 200
    except Exception as e:
        return json_error(e, "edit sale")


@sales_bp.get("/overview")
@require_auth
def sales_overview_route():
    try:
        unit_ids = unit_ids_arg()
        date_from, date_to = date_range_args()
        sales = sales_service.sales_overview(g.session_context, unit_ids, date_from, date_to)
        return jsonify([sale.to_dict() for sale in sales]), 200
    except Exception as e:
        return json_error(e, "list sales overview")


@sales_bp.post("/confirm")
@require_auth
def confirm_sales_route():
    """Body: {"unit_id": 1, "sale_ids": [..]}"""
    try:
        count = sales_service.confirm_sales(g.session_context, json_body())
        return jsonify({"confirmed": count}), 200
    except Exception as e:
        return json_error(e, "confirm sales")


@sales_bp.post("/<int:sale_id>/unlock")
@require_auth
def unlock_sale_route(sale_id: int):
    try:
        sale = sales_service.unlock_sale(g.session_context, sale_id)
        return jsonify(sale.to_dict()), 200
    except Exception as e:
        return json_error(e, "unlock sale")
