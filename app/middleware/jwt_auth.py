"""
JWT Auth Middleware — session guard for admin routes.

Two pieces:
  - init_jwt_middleware: before_request hook that parses an
    ``Authorization: Bearer <token>`` header when present and sets
    ``g.admin`` (SessionClaims) or leaves it None. It never rejects.
  - require_session: view decorator that rejects with SessionInvalidError
    (401) unless the hook produced valid claims. The view body never runs
    for an unauthenticated caller.

Public routes (OTP issuance/verification, request submission, health)
simply don't carry the decorator.
"""

from functools import wraps

from flask import g, request

from app.core.exceptions import SessionInvalidError
from app.services.jwt_service import decode_session_token

_BEARER = "Bearer "


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER):
        return None
    return auth_header[len(_BEARER):].strip() or None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.admin = None
        g.session_error = None

        if not request.path.startswith("/api/v1/"):
            return

        token = _bearer_token()
        if token is None:
            return

        try:
            g.admin = decode_session_token(token)
        except SessionInvalidError as exc:
            # Deferred: only guarded views turn this into a 401
            g.session_error = exc


def require_session(f):
    """
    Decorator: the caller must hold a valid admin session token.

    Usage:
        @bp.route("/requests/<request_id>", methods=["DELETE"])
        @require_session
        def delete(request_id):
            ...
    """

    @wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "admin", None) is None:
            error = getattr(g, "session_error", None)
            raise error or SessionInvalidError(detail="missing_token")
        return f(*args, **kwargs)

    return decorated
