# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User administration. Every endpoint requires the admin page flag.

Page access and unit access are replaced wholesale on update. Changes to
page access reach a user's sessions only at their next login.
"""

from flask import Blueprint, jsonify, g

from ..decorators import require_auth, require_capability
from ..permissions import Capability
from ..services import user_service
from .common import json_body, json_error


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_capability(Capability.ADMIN)
def list_users_route():
    users = user_service.list_users()
    return jsonify([user.to_dict() for user in users]), 200


@users_bp.post("")
@require_auth
@require_capability(Capability.ADMIN)
def create_user_route():
    try:
        user = user_service.create_user(json_body())
        return jsonify(user.to_dict()), 201
    except Exception as e:
        return json_error(e, "create user")


@users_bp.get("/<int:user_id>")
@require_auth
@require_capability(Capability.ADMIN)
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
        return jsonify(user.to_dict()), 200
    except Exception as e:
        return json_error(e, "get user")


@users_bp.put("/<int:user_id>")
@require_auth
@require_capability(Capability.ADMIN)
def update_user_route(user_id: int):
    try:
        user = user_service.update_user(user_id, json_body())
        return jsonify(user.to_dict()), 200
    except Exception as e:
        return json_error(e, "update user")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_capability(Capability.ADMIN)
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.session_context, user_id)
        return jsonify({"ok": True}), 200
    except Exception as e:
        return json_error(e, "delete user")
