"""
Health probes.

/health/live answers as long as the process runs. /health/ready reports the
planner schema, the plan cache and the registered blueprints, and returns 503
when the database cannot serve the planner.
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from models import db
from services.cache import plan_cache
from utils.startup_validation import check_plan_cache, check_schema

logger = logging.getLogger(__name__)

health_production_bp = Blueprint('health_production', __name__, url_prefix='/health')

_started_at = time.monotonic()


@health_production_bp.route('/live')
def liveness():
    return jsonify({
        "status": "alive",
        "uptime_seconds": round(time.monotonic() - _started_at, 2),
    }), 200


@health_production_bp.route('/ready')
def readiness():
    started = time.monotonic()
    schema = check_schema(db)
    latency_ms = round((time.monotonic() - started) * 1000, 2)
    if not schema.ok:
        logger.warning(f"Readiness: {schema.detail}")

    cache_outcome = check_plan_cache()
    checks = {
        "database": {
            "healthy": schema.ok,
            "latency_ms": latency_ms,
            "type": db.engine.dialect.name,
            "detail": schema.detail,
        },
        "plan_cache": {
            "healthy": cache_outcome.ok,
            "enabled": plan_cache.enabled,
            "detail": cache_outcome.detail,
        },
    }
    registry = current_app.extensions.get("blueprint_registry")
    if registry is not None:
        checks["blueprints"] = registry.get_status()

    return jsonify({
        "status": "ready" if schema.ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }), 200 if schema.ok else 503
