"""
Directory Blueprint — read-only lists of active analysts and admins.

Endpoints:
  GET /api/v1/analysts   (session)
  GET /api/v1/admins     (session)
"""

from flask import Blueprint, jsonify

from app.middleware.jwt_auth import require_session
from app.services.admin_service import list_active_admins, list_active_analysts
from app.utils.errors import register_error_handlers

directory_bp = Blueprint("directory_bp", __name__, url_prefix="/api/v1")
register_error_handlers(directory_bp)


@directory_bp.route("/analysts", methods=["GET"])
@require_session
def analysts():
    return jsonify({"analysts": [a.to_dict() for a in list_active_analysts()]}), 200


@directory_bp.route("/admins", methods=["GET"])
@require_session
def admins():
    return jsonify({"admins": [a.to_dict() for a in list_active_admins()]}), 200
