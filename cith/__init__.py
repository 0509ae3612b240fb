"""
CITH Weekly Report Tracker
Flask Application Factory.

Usage:
    from cith import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from cith.config import config
from cith.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from cith.models import db
from cith.middleware.actor_context import init_actor_context
from cith.middleware.logging_config import configure_logging
from cith.middleware.rate_limiter import init_rate_limits
from cith.middleware.security_headers import init_security_headers
from cith.middleware.timing import init_request_timing
from cith.utils.errors import E, api_error

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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

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

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_actor_context(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from cith.models import auth as _auth_models                  # noqa: F401
    from cith.models import hierarchy as _hierarchy_models        # noqa: F401
    from cith.models import message as _message_models            # noqa: F401
    from cith.models import notification as _notification_models  # noqa: F401
    from cith.models import position_change as _position_models   # noqa: F401
    from cith.models import report as _report_models              # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from cith.blueprints.health_bp import health_bp
    from cith.blueprints.hierarchy_bp import hierarchy_bp
    from cith.blueprints.notification_bp import message_bp, notification_bp
    from cith.blueprints.position_bp import position_bp
    from cith.blueprints.report_bp import report_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(hierarchy_bp)
    app.register_blueprint(report_bp)
    app.register_blueprint(position_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(message_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed a demo hierarchy with one user per role and log their access tokens."""
        from cith.repositories import OrgEntityRepository
        from cith.services.demo_seed import seed_demo_hierarchy
        from cith.services.jwt_service import generate_access_token

        db.create_all()
        if OrgEntityRepository(db.session).district_by_number(1) is not None:
            logger.info("Demo data already present (district 1 exists); nothing to do.")
            return
        seeded = seed_demo_hierarchy(db.session)
        db.session.commit()
        for name, obj in seeded.items():
            if hasattr(obj, "role"):
                logger.info("%-10s id=%-3s token=%s", name, obj.id, generate_access_token(obj.id, obj.role))

    # ── Error handlers ───────────────────────────────────────────────────
    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_error_handlers(app):
    """Translate service exceptions into the standard JSON error body."""

    @app.errorhandler(ValidationError)
    def _validation(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        return api_error(E.NOT_FOUND, f"{e.resource} not found")

    @app.errorhandler(ConflictError)
    def _conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @app.errorhandler(StateConflictError)
    def _state_conflict(e):
        return api_error(E.CONFLICT_STATE, str(e), details={"current_status": e.current_status})

    @app.errorhandler(AuthorizationError)
    def _forbidden(e):
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(AuthenticationError)
    def _unauthenticated(e):
        return api_error(E.UNAUTHENTICATED, str(e))

    @app.errorhandler(HTTPException)
    def _http(e):
        code = E.NOT_FOUND if e.code == 404 else E.BAD_REQUEST
        return api_error(code, e.description or e.name, status=e.code)

    @app.errorhandler(SQLAlchemyError)
    def _database(e):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(Exception)
    def _internal(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error(E.INTERNAL, "Internal server error")
