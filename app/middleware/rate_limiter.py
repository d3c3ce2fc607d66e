"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_OTP_LIMIT = "5/minute"
DEFAULT_WRITE_LIMIT = "60/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:     OTP_RATE_LIMIT (default 5/minute); every
                              request-otp / verify-otp counts
        - Request endpoints:  60/minute
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    otp_limit = app.config.get("OTP_RATE_LIMIT") or DEFAULT_OTP_LIMIT

    bp = app.blueprints.get("auth_bp")
    if bp:
        limiter.limit(otp_limit)(bp)

    for bp_name in ("request_bp", "directory_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(DEFAULT_WRITE_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — auth: %s, requests: %s",
                    otp_limit, DEFAULT_WRITE_LIMIT)
