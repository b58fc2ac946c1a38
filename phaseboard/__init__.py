"""
Phaseboard
Flask Application Factory.

Usage:
    from phaseboard import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from phaseboard.config import config
from phaseboard.models import db
from phaseboard.auth import init_auth
from phaseboard.middleware.logging_config import configure_logging
from phaseboard.middleware.rate_limiter import init_rate_limits
from phaseboard.middleware.timing import init_request_timing
from phaseboard.services.change_feed import init_change_feed

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
    default_limits=[],                     # no global limit, applied per blueprint
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
    db_uri = app.config["SQLALCHEMY_DATABASE_URI"] or ""
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        sqlite_dir = os.path.dirname(db_uri[len("sqlite:///"):])
        if sqlite_dir:
            os.makedirs(sqlite_dir, exist_ok=True)
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing (first before_request hook) ──────────────────────
    init_request_timing(app)

    # ── Identity provider + authentication hook ─────────────────────────
    init_auth(app)

    # ── Change feed (session hooks + subscriber limits) ─────────────────
    init_change_feed(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        from flask import abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic / create_all can see them ──────────
    from phaseboard.models import project as _project_models    # noqa: F401
    from phaseboard.models import process as _process_models    # noqa: F401
    from phaseboard.models import task as _task_models          # noqa: F401
    from phaseboard.models import notes as _notes_models        # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ───────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from phaseboard.blueprints.auth_bp import auth_bp
    from phaseboard.blueprints.changes_bp import changes_bp
    from phaseboard.blueprints.health_bp import health_bp
    from phaseboard.blueprints.note_bp import note_bp
    from phaseboard.blueprints.process_bp import process_bp
    from phaseboard.blueprints.project_bp import project_bp
    from phaseboard.blueprints.task_bp import task_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(process_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(note_bp)
    app.register_blueprint(changes_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": e.description}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
