"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — minimal liveness ping
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — detailed status (database, change feed)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from phaseboard.models import db
from phaseboard.services.change_feed import change_feed

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "Phaseboard"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Change feed ──────────────────────────────────────────────────
    checks["change_feed"] = {
        "status": "ok",
        "subscribers": change_feed.subscriber_count,
        "max_subscribers": change_feed.max_subscribers,
    }

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Phaseboard",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "identity_provider": current_app.extensions["identity_provider"].name,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
