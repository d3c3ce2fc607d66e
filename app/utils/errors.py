"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Request not found")
    return api_error(E.VALIDATION_INVALID, "email is required")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    INVALID_CREDENTIALS = "ERR_INVALID_CREDENTIALS"
    OTP_EXPIRED = "ERR_OTP_EXPIRED"

    # Authorization – HTTP 403
    NOT_AUTHORIZED = "ERR_NOT_AUTHORIZED"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Rate limited – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 5xx
    NOTIFICATION_DELIVERY = "ERR_NOTIFICATION_DELIVERY"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.INVALID_CREDENTIALS: 401,
    E.OTP_EXPIRED: 401,
    E.NOT_AUTHORIZED: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.NOTIFICATION_DELIVERY: 502,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field-level validation errors).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(bp) -> None:
    """Attach the portal exception taxonomy to a blueprint (or app)."""
    import logging

    from flask import request

    from app.core.exceptions import (
        AuthError,
        NotFoundError,
        NotificationDeliveryError,
        TransitionError,
        ValidationError,
    )

    logger = logging.getLogger(bp.name if hasattr(bp, "name") else __name__)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(error.code, error.public_message, details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(error.code, error.public_message)

    @bp.errorhandler(TransitionError)
    def _handle_transition(error: TransitionError):
        return api_error(error.code, error.public_message)

    @bp.errorhandler(AuthError)
    def _handle_auth(error: AuthError):
        # detail stays in the log, never in the response
        logger.info("Auth rejected endpoint=%s code=%s detail=%s",
                    request.endpoint, error.code, error.detail)
        return api_error(error.code, error.public_message)

    @bp.errorhandler(NotificationDeliveryError)
    def _handle_delivery(error: NotificationDeliveryError):
        logger.error("Notification delivery failed endpoint=%s: %s", request.endpoint, error)
        return api_error(error.code, error.public_message)
