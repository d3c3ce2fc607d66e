"""
Auth Blueprint — passwordless admin login.

Endpoints:
  POST /api/v1/auth/request-otp   — Email → one-time code by email
  POST /api/v1/auth/verify-otp    — Email + code → session token
  GET  /api/v1/auth/me            — Current admin from the session token

Error bodies are fixed per failure class; the cause behind an auth
failure is logged, never returned.
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.middleware.jwt_auth import require_session
from app.services import otp_service
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/request-otp
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/request-otp", methods=["POST"])
def request_otp():
    """
    Issue a login code.

    Body: { "email": "..." }
    """
    data = request.get_json(silent=True) or {}
    otp_service.request_otp(data.get("email"))
    return jsonify({"success": True, "message": "OTP sent to your email"}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/verify-otp
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    """
    Redeem a login code.

    Body: { "email": "...", "otp": "123456" }
    """
    data = request.get_json(silent=True) or {}
    session = otp_service.verify_otp(data.get("email"), data.get("otp", data.get("code")))
    return jsonify(session.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_session
def me():
    return jsonify({"admin": g.admin.to_dict()}), 200
