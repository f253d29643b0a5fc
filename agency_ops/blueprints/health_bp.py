"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  - simple 200 for load balancers
    GET /api/v1/health/live   - dependency status (database, document service)
"""

import logging
import time

import requests
from flask import Blueprint, current_app, jsonify

from agency_ops.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe - always 200 if app is running."""
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
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check - database failed: %s", exc)

    # ── Document service ─────────────────────────────────────────────
    doc_url = current_app.config.get("DOCUMENT_SERVICE_URL", "")
    if doc_url:
        try:
            t0 = time.perf_counter()
            resp = requests.get(f"{doc_url.rstrip('/')}/health", timeout=2)
            doc_ms = (time.perf_counter() - t0) * 1000
            checks["document_service"] = {
                "status": "ok" if resp.ok else "error",
                "http_status": resp.status_code,
                "latency_ms": round(doc_ms, 1),
            }
        except requests.RequestException as exc:
            # Local generation still works; not fatal
            checks["document_service"] = {"status": "error", "detail": str(exc)}
    else:
        checks["document_service"] = {"status": "skipped", "detail": "no DOCUMENT_SERVICE_URL configured"}

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Agency Ops Platform",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
