# Overview: Flask API routes for storefront lookups; parses input and returns JSON responses.

"""
Read-only lookups used by the entry screens.

- GET /api/units          active units the session may see
- GET /api/products       active products of one unit (?unit_id=)
- GET /api/payment-types  active payment types
"""

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import unit_service, product_service, payment_type_service
from ..services.unit_access_service import require_unit_access
from .common import int_arg, json_error


storefront_bp = Blueprint("storefront", __name__, url_prefix="/api")


@storefront_bp.get("/units")
@require_auth
def list_units_route():
    units = unit_service.list_accessible_units(g.session_context)
    return jsonify([unit.to_dict() for unit in units]), 200


@storefront_bp.get("/products")
@require_auth
def list_products_route():
    try:
        unit_id = int_arg("unit_id")
        require_unit_access(g.session_context, unit_id)
        products = product_service.list_unit_products(unit_id)
        return jsonify([product.to_dict() for product in products]), 200
    except Exception as e:
        return json_error(e, "list products")


@storefront_bp.get("/payment-types")
@require_auth
def list_payment_types_route():
    payment_types = payment_type_service.list_payment_types(active_only=True)
    return jsonify([pt.to_dict() for pt in payment_types]), 200
