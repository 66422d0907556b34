"""
Startup checks for the planner.

Run once from ``create_app``: configuration, the planner schema and the
optional plan cache. In production a blocking failure stops the process.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import redis
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

PLANNER_TABLES = (
    "users",
    "tasks",
    "fixed_commitments",
    "user_settings",
    "study_plans",
    "study_sessions",
)
MIN_SECRET_LENGTH = 32


@dataclass
class CheckOutcome:
    name: str
    ok: bool
    detail: str
    blocking: bool = False
    fix: Optional[str] = None


@dataclass
class ReadinessReport:
    environment: str
    outcomes: List[CheckOutcome] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def blocking_failures(self) -> List[CheckOutcome]:
        return [o for o in self.outcomes if not o.ok and o.blocking]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "ready": not self.blocking_failures,
            "checks": {
                o.name: {"ok": o.ok, "detail": o.detail, "blocking": o.blocking}
                for o in self.outcomes
            },
        }


def check_configuration(production: bool) -> List[CheckOutcome]:
    """Secrets and database URL; only production treats them as blocking."""
    outcomes = []
    for var_name in ("SESSION_SECRET", "DATABASE_URL"):
        present = bool(os.getenv(var_name))
        outcomes.append(CheckOutcome(
            name=f"env:{var_name}",
            ok=present or not production,
            detail="configured" if present else "not set, using development default",
            blocking=production,
            fix=None if present else f"Set {var_name}",
        ))

    secret = os.getenv("SESSION_SECRET", "")
    if secret and len(secret) < MIN_SECRET_LENGTH:
        outcomes.append(CheckOutcome(
            name="security:session_secret",
            ok=not production,
            detail=f"{len(secret)} characters, {MIN_SECRET_LENGTH} expected",
            blocking=production,
            fix=f"Use at least {MIN_SECRET_LENGTH} characters for SESSION_SECRET",
        ))
    return outcomes


def check_schema(db) -> CheckOutcome:
    """Every planner table must exist on the configured database."""
    try:
        existing = set(inspect(db.engine).get_table_names())
    except SQLAlchemyError as e:
        return CheckOutcome(
            name="db:schema",
            ok=False,
            detail=f"database unreachable: {str(e)[:100]}",
            blocking=True,
            fix="Check DATABASE_URL",
        )

    missing = [t for t in PLANNER_TABLES if t not in existing]
    if missing:
        return CheckOutcome(
            name="db:schema",
            ok=False,
            detail=f"missing tables: {', '.join(missing)}",
            blocking=True,
            fix="Start the app once with a writable database so tables are created",
        )
    return CheckOutcome(name="db:schema", ok=True, detail=f"{len(PLANNER_TABLES)} planner tables present")


def check_plan_cache() -> CheckOutcome:
    """Redis is optional; without it plans are read straight from the database."""
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return CheckOutcome(name="cache:redis", ok=True, detail="not configured, plan cache disabled")
    try:
        redis.from_url(redis_url, socket_connect_timeout=5).ping()
    except (redis.RedisError, ValueError) as e:
        return CheckOutcome(
            name="cache:redis",
            ok=False,
            detail=f"unreachable: {str(e)[:100]}",
            fix="Check REDIS_URL or unset it",
        )
    return CheckOutcome(name="cache:redis", ok=True, detail="reachable")


def run_startup_validation(db=None) -> ReadinessReport:
    """Run every check and log failures; exits in production on a blocking failure."""
    report = ReadinessReport(environment=os.getenv("FLASK_ENV", "development"))
    report.outcomes.extend(check_configuration(report.is_production))
    if db is not None:
        report.outcomes.append(check_schema(db))
    report.outcomes.append(check_plan_cache())

    passed = sum(1 for o in report.outcomes if o.ok)
    logger.info(f"Startup checks ({report.environment}): {passed}/{len(report.outcomes)} passed")
    for outcome in report.outcomes:
        if not outcome.ok:
            log = logger.error if outcome.blocking else logger.warning
            log(f"  - {outcome.name}: {outcome.detail}" + (f" ({outcome.fix})" if outcome.fix else ""))

    if report.blocking_failures:
        if report.is_production:
            logger.critical("Planner cannot start - blocking startup checks failed")
            sys.exit(1)
        logger.warning("Continuing despite failed startup checks (non-production)")
    return report


class BlueprintRegistry:
    """Registers blueprints and remembers their names for the readiness probe."""

    def __init__(self, app):
        self.app = app
        self.loaded: List[str] = []

    def register(self, blueprint, url_prefix: Optional[str] = None) -> None:
        options = {"url_prefix": url_prefix} if url_prefix else {}
        self.app.register_blueprint(blueprint, **options)
        self.loaded.append(blueprint.name)
        logger.debug(f"Registered blueprint: {blueprint.name}")

    def get_status(self) -> Dict[str, Any]:
        return {"loaded_count": len(self.loaded), "loaded": list(self.loaded)}
