# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Administration of units, products and payment types.

GUARDS:
- Units and products: super-admin role only. The admin page flag is ignored.
- Payment types: admin page flag, checked for everyone including the super-admin.

Deletes are hard deletes; rows still referenced elsewhere answer 400.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_capability, require_super_admin
from ..permissions import Capability
from ..services import unit_service, product_service, payment_type_service
from .common import json_body, json_error


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# UNITS
# =============================================================================

@admin_bp.get("/units")
@require_auth
@require_super_admin
def list_units_route():
    units = unit_service.list_units()
    return jsonify([unit.to_dict() for unit in units]), 200


@admin_bp.post("/units")
@require_auth
@require_super_admin
def create_unit_route():
    try:
        unit = unit_service.create_unit(json_body())
        return jsonify(unit.to_dict()), 201
    except Exception as e:
        return json_error(e, "create unit")


@admin_bp.put("/units/<int:unit_id>")
@require_auth
@require_super_admin
def update_unit_route(unit_id: int):
    try:
        unit = unit_service.update_unit(unit_id, json_body())
        return jsonify(unit.to_dict()), 200
    except Exception as e:
        return json_error(e, "update unit")


@admin_bp.delete("/units/<int:unit_id>")
@require_auth
@require_super_admin
def delete_unit_route(unit_id: int):
    try:
        unit_service.delete_unit(unit_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete unit")


# =============================================================================
# PRODUCTS
# =============================================================================

@admin_bp.get("/products")
@require_auth
@require_super_admin
def list_products_route():
    unit_id = request.args.get("unit_id", type=int)
    products = product_service.list_products(unit_id)
    return jsonify([product.to_dict() for product in products]), 200


@admin_bp.post("/products")
@require_auth
@require_super_admin
def create_product_route():
    try:
        product = product_service.create_product(json_body())
        return jsonify(product.to_dict()), 201
    except Exception as e:
        return json_error(e, "create product")


@admin_bp.put("/products/<int:product_id>")
@require_auth
@require_super_admin
def update_product_route(product_id: int):
    try:
        product = product_service.update_product(product_id, json_body())
        return jsonify(product.to_dict()), 200
    except Exception as e:
        return json_error(e, "update product")


@admin_bp.delete("/products/<int:product_id>")
@require_auth
@require_super_admin
def delete_product_route(product_id: int):
    try:
        product_service.delete_product(product_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete product")


# =============================================================================
# PAYMENT TYPES
# =============================================================================

@admin_bp.get("/payment-types")
@require_auth
@require_capability(Capability.ADMIN)
def list_payment_types_route():
    payment_types = payment_type_service.list_payment_types()
    return jsonify([pt.to_dict() for pt in payment_types]), 200


@admin_bp.post("/payment-types")
@require_auth
@require_capability(Capability.ADMIN)
def create_payment_type_route():
    try:
        payment_type = payment_type_service.create_payment_type(json_body())
        return jsonify(payment_type.to_dict()), 201
    except Exception as e:
        return json_error(e, "create payment type")


@admin_bp.put("/payment-types/<int:payment_type_id>")
@require_auth
@require_capability(Capability.ADMIN)
def update_payment_type_route(payment_type_id: int):
    try:
        payment_type = payment_type_service.update_payment_type(payment_type_id, json_body())
        return jsonify(payment_type.to_dict()), 200
    except Exception as e:
        return json_error(e, "update payment type")


@admin_bp.delete("/payment-types/<int:payment_type_id>")
@require_auth
@require_capability(Capability.ADMIN)
def delete_payment_type_route(payment_type_id: int):
    try:
        payment_type_service.delete_payment_type(payment_type_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete payment type")
