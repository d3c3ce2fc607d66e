"""
Request Blueprint — analytics request lifecycle.

Endpoints:
  POST   /api/v1/requests                  — public submission
  GET    /api/v1/requests?status=&limit=&offset= — list, newest first (session)
  GET    /api/v1/requests/export           — CSV download              (session)
  GET    /api/v1/requests/<id>             — detail with edit history  (session)
  GET    /api/v1/requests/<id>/history     — edit history, oldest first (session)
  POST   /api/v1/requests/<id>/assign      — { analystId, notes? }     (session)
  PATCH  /api/v1/requests/<id>/edit        — { dueDate, reason }       (session)
  POST   /api/v1/requests/<id>/complete    —                           (session)
  DELETE /api/v1/requests/<id>             —                           (session)

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request

from app.blueprints import paginate_query
from app.middleware.jwt_auth import require_session
from app.services import export_service
from app.services import request_lifecycle as lifecycle
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

request_bp = Blueprint("request_bp", __name__, url_prefix="/api/v1/requests")
register_error_handlers(request_bp)


# ═══════════════════════════════════════════════════════════════
# Public submission
# ═══════════════════════════════════════════════════════════════
@request_bp.route("", methods=["POST"])
def create():
    data = request.get_json(silent=True) or {}
    req = lifecycle.create_request(data)
    return jsonify({"success": True, "request": req.to_dict()}), 201


# ═══════════════════════════════════════════════════════════════
# Admin reads
# ═══════════════════════════════════════════════════════════════
@request_bp.route("", methods=["GET"])
@require_session
def list_all():
    status = request.args.get("status") or None
    items, total = paginate_query(lifecycle.requests_query(status))
    return jsonify({"requests": [r.to_dict() for r in items], "total": total}), 200


@request_bp.route("/export", methods=["GET"])
@require_session
def export_csv():
    """
    Download requests as CSV.

    Query: startDate, endDate (ISO-8601, both optional, inclusive)
    """
    body = export_service.export_requests_csv(
        request.args.get("startDate") or None,
        request.args.get("endDate") or None,
    )
    filename = export_service.export_filename()
    logger.info("Export downloaded by=%s", g.admin.email,
                extra={"event_type": "requests_exported", "admin_email": g.admin.email})
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@request_bp.route("/<request_id>", methods=["GET"])
@require_session
def detail(request_id):
    req = lifecycle.get_request(request_id)
    return jsonify({"request": req.to_dict(include_history=True)}), 200


@request_bp.route("/<request_id>/history", methods=["GET"])
@require_session
def history(request_id):
    entries = lifecycle.list_edit_history(request_id)
    return jsonify({"history": [h.to_dict() for h in entries]}), 200


# ═══════════════════════════════════════════════════════════════
# Admin mutations
# ═══════════════════════════════════════════════════════════════
@request_bp.route("/<request_id>/assign", methods=["POST"])
@require_session
def assign(request_id):
    data = request.get_json(silent=True) or {}
    req = lifecycle.assign_request(
        request_id,
        data.get("analystId") or data.get("analyst_id"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "request": req.to_dict()}), 200


@request_bp.route("/<request_id>/edit", methods=["PATCH"])
@require_session
def edit(request_id):
    data = request.get_json(silent=True) or {}
    req = lifecycle.edit_due_date(
        request_id,
        data.get("dueDate") or data.get("due_date"),
        data.get("reason"),
        editor_email=g.admin.email,
    )
    return jsonify({"success": True, "request": req.to_dict(include_history=True)}), 200


@request_bp.route("/<request_id>/complete", methods=["POST"])
@require_session
def complete(request_id):
    req = lifecycle.complete_request(request_id)
    return jsonify({"success": True, "request": req.to_dict()}), 200


@request_bp.route("/<request_id>", methods=["DELETE"])
@require_session
def delete(request_id):
    lifecycle.delete_request(request_id)
    logger.info("Request delete requested by=%s id=%s", g.admin.email, request_id,
                extra={"admin_email": g.admin.email})
    return jsonify({"success": True}), 200
