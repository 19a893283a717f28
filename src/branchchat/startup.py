"""
Startup dependency checks for the BranchChat API.

Validates the database and responder configuration before the server starts
accepting requests, and fails fast with an actionable hint when something
is missing.
"""

import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from branchchat.config import settings
from branchchat.db.connection import SessionLocal, engine
from branchchat.models.db import utc_now

logger = logging.getLogger(__name__)


@dataclass
class StartupMetrics:
    """Timings collected while the startup checks run."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    database_check_ms: Optional[float] = None
    migrations_check_ms: Optional[float] = None
    responder_check_ms: Optional[float] = None
    checks_passed: bool = False


startup_metrics = StartupMetrics(started_at=utc_now())


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'=' * 70}\nSTARTUP CHECK FAILED\n{'=' * 70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'=' * 70}\n"
        return error_msg


def _using_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


def check_database_connection() -> None:
    """
    Verify the database is reachable.

    Raises:
        StartupCheckError: If the connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
    except Exception as e:
        error_str = str(e).lower()
        if "could not connect" in error_str or "connection refused" in error_str:
            hint = (
                "PostgreSQL is not running.\n"
                "  - Start it locally, or set DATABASE_URL=sqlite:///./branchchat.db"
            )
        elif "authentication failed" in error_str or "password" in error_str:
            hint = (
                "Database authentication failed.\n"
                f"  - Current user: {settings.postgres_user}\n"
                f"  - Current database: {settings.postgres_db}"
            )
        else:
            hint = f"Check your database configuration in .env\nError: {e}"
        raise StartupCheckError("Cannot connect to the database", hint) from e

    if result != 1:
        raise StartupCheckError(
            "Database query returned an unexpected result",
            "Database may be misconfigured",
        )


def check_database_migrations() -> None:
    """
    Verify Alembic migrations are applied. Skipped for SQLite, whose tables
    are created on connect.

    Raises:
        StartupCheckError: If the schema is behind the newest migration
    """
    if _using_sqlite():
        return

    try:
        script = ScriptDirectory.from_config(AlembicConfig("alembic.ini"))
        head_revision = script.get_current_head()
        with engine.connect() as connection:
            current_revision = MigrationContext.configure(
                connection
            ).get_current_revision()
    except Exception as e:
        raise StartupCheckError(
            f"Failed to check migration status: {e}",
            "Ensure alembic.ini exists in the working directory",
        ) from e

    if current_revision is None:
        raise StartupCheckError(
            "Database has no migration version",
            "Run migrations: alembic upgrade head",
        )
    if current_revision != head_revision:
        raise StartupCheckError(
            f"Database migrations are out of date\n"
            f"Current revision: {current_revision}\n"
            f"Expected revision: {head_revision}",
            "Run: alembic upgrade head",
        )


def check_responder_configuration() -> None:
    """
    Verify the configured responder can be built. No request is sent.

    Raises:
        StartupCheckError: Unknown provider or missing credentials
    """
    from branchchat.responders import create_responder_from_settings

    try:
        create_responder_from_settings(settings)
    except ValueError as e:
        provider = settings.responder_provider
        raise StartupCheckError(
            f"Responder '{provider}' is not configured: {e}",
            f"Set {provider.upper()}_API_KEY in .env, or RESPONDER_PROVIDER=http "
            "with RESPONDER_HTTP_URL",
        ) from e


def run_all_startup_checks() -> None:
    """
    Run every startup check in dependency order.

    Raises:
        SystemExit: After reporting the first failing check
    """
    startup_start = time.time()

    checks = [
        ("Database Connection", check_database_connection, "database_check_ms"),
        ("Database Migrations", check_database_migrations, "migrations_check_ms"),
        ("Responder Configuration", check_responder_configuration, "responder_check_ms"),
    ]

    for check_name, check_func, metric_name in checks:
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError as e:
            setattr(startup_metrics, metric_name, (time.time() - check_start) * 1000)
            logger.critical(f"{check_name} check failed")
            print(str(e), file=sys.stderr)
            sys.exit(1)
        duration = (time.time() - check_start) * 1000
        setattr(startup_metrics, metric_name, duration)
        logger.info(f"{check_name} check passed ({duration:.1f}ms)")

    startup_metrics.completed_at = utc_now()
    startup_metrics.total_duration_ms = (time.time() - startup_start) * 1000
    startup_metrics.checks_passed = True


def check_readiness() -> tuple[bool, dict]:
    """
    Quick readiness probe.

    Returns:
        (is_ready, details) where details holds the database status,
        whether startup completed, and the uptime in seconds
    """
    db_ready = True
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Readiness database ping failed: {e}")
        db_ready = False

    is_ready = db_ready and startup_metrics.checks_passed
    return is_ready, {
        "ready": is_ready,
        "database": "healthy" if db_ready else "unhealthy",
        "startup_completed": startup_metrics.checks_passed,
        "uptime_seconds": (utc_now() - startup_metrics.started_at).total_seconds(),
    }
