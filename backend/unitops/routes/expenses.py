# Overview: Flask API routes for expenses and receipt images; parses input and returns JSON responses.

"""
Expense API routes

EXPENSES:
- GET    /api/expenses?unit_id=     active expenses of a unit
- POST   /api/expenses              record an expense
- PUT    /api/expenses/<id>         edit (scope checked on old and new unit)
- DELETE /api/expenses/<id>         soft delete
- GET    /api/expenses/overview     expenses of several units in a date range

IMAGES:
- POST   /api/upload/images                       multipart: expense_id, images
- GET    /api/expenses/<id>/images
- DELETE /api/expenses/<id>/images/<image_id>     soft delete
- GET    /api/images/<file_name>                  serve a stored file
"""

from flask import Blueprint, jsonify, request, send_from_directory, g

from ..decorators import require_auth
from ..services import expense_service, expense_image_service
from ..validation import coerce_int, require_fields
from .common import date_range_args, int_arg, json_body, json_error, unit_ids_arg


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api")


@expenses_bp.get("/expenses")
@require_auth
def list_expenses_route():
    try:
        expenses = expense_service.list_unit_expenses(g.session_context, int_arg("unit_id"))
        return jsonify([expense.to_dict() for expense in expenses]), 200
    except Exception as e:
        return json_error(e, "list expenses")


@expenses_bp.post("/expenses")
@require_auth
def create_expense_route():
    try:
        expense = expense_service.create_expense(g.session_context, json_body())
        return jsonify(expense.to_dict()), 201
    except Exception as e:
        return json_error(e, "create expense")


@expenses_bp.put("/expenses/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    try:
        expense = expense_service.update_expense(g.session_context, expense_id, json_body())
        return jsonify(expense.to_dict()), 200
    except Exception as e:
        return json_error(e, "update expense")


@expenses_bp.delete("/expenses/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(g.session_context, expense_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete expense")


@expenses_bp.get("/expenses/overview")
@require_auth
def expenses_overview_route():
    try:
        unit_ids = unit_ids_arg()
        date_from, date_to = date_range_args()
        expenses = expense_service.expenses_overview(g.session_context, unit_ids, date_from, date_to)
        return jsonify([expense.to_dict() for expense in expenses]), 200
    except Exception as e:
        return json_error(e, "list expenses overview")


# =============================================================================
# IMAGES
# =============================================================================

@expenses_bp.post("/upload/images")
@require_auth
def upload_images_route():
    try:
        require_fields(request.form, ["expense_id"])
        expense_id = coerce_int("expense_id", request.form["expense_id"])
        uploads = request.files.getlist("images")
        images = expense_image_service.upload_images(g.session_context, expense_id, uploads)
        return jsonify({"images": [image.to_dict() for image in images]}), 201
    except Exception as e:
        return json_error(e, "upload images")


@expenses_bp.get("/expenses/<int:expense_id>/images")
@require_auth
def list_images_route(expense_id: int):
    try:
        images = expense_image_service.list_images(g.session_context, expense_id)
        return jsonify([image.to_dict() for image in images]), 200
    except Exception as e:
        return json_error(e, "list images")


@expenses_bp.delete("/expenses/<int:expense_id>/images/<int:image_id>")
@require_auth
def delete_image_route(expense_id: int, image_id: int):
    try:
        expense_image_service.delete_image(g.session_context, expense_id, image_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete image")


@expenses_bp.get("/images/<path:file_name>")
@require_auth
def serve_image_route(file_name: str):
    try:
        directory, name = expense_image_service.resolve_image_path(file_name)
    except Exception as e:
        return json_error(e, "serve image")
    return send_from_directory(directory, name)
