"""
Analytics Request Portal
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.jwt_auth import init_jwt_middleware
from app.services.notification import init_notifications
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per-blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name or a config class.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")
    config_obj = config[config_name] if isinstance(config_name, str) else config_name

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig validates secrets in __init__
    app.config.from_object(config_obj() if isinstance(config_obj, type) else config_obj)
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)
    init_notifications(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT session middleware (sets g.admin) ────────────────────────────
    init_jwt_middleware(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)  # 1 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models        # noqa: F401
    from app.models import request as _request_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.request_bp import request_bp
    from app.blueprints.directory_bp import directory_bp
    from app.blueprints.health_bp import health_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(request_bp)
    app.register_blueprint(directory_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    _register_cli(app)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests",
                         details={"retry_after": str(e.description)})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_cli(app):
    """Out-of-band provisioning for admins and analysts."""
    from app.core.exceptions import NotFoundError, ValidationError
    from app.services.admin_service import deactivate_admin, provision_admin, provision_analyst

    @app.cli.command("seed-admin")
    @click.option("--email", required=True, help="Admin email (login identity).")
    @click.option("--name", required=True, help="Display name.")
    def seed_admin_cmd(email, name):
        """Create or reactivate an admin."""
        try:
            admin = provision_admin(email, name)
        except ValidationError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Admin ready: {admin.email} ({admin.id})")

    @app.cli.command("deactivate-admin")
    @click.option("--email", required=True, help="Admin email.")
    def deactivate_admin_cmd(email):
        """Revoke an admin's ability to log in."""
        try:
            admin = deactivate_admin(email)
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Admin deactivated: {admin.email}")

    @app.cli.command("seed-analyst")
    @click.option("--name", required=True, help="Analyst display name.")
    @click.option("--email", default=None, help="Optional email for assignment notices.")
    @click.option("--id", "analyst_id", default=None, help="Fixed analyst id (upsert).")
    def seed_analyst_cmd(name, email, analyst_id):
        """Create or update an analyst."""
        try:
            analyst = provision_analyst(name, email=email, analyst_id=analyst_id)
        except ValidationError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Analyst ready: {analyst.name} ({analyst.id})")
