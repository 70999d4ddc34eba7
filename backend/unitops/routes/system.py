# Overview: Flask API routes for system health and version endpoints.

"""
System health and version endpoints.

Health checks cover the database and the session store; the upload
directory is checked for writability because expense images depend on it.
"""

import os
import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Unit, User, SessionToken
from ..services.expense_image_service import upload_dir
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        unit_count = db.session.query(Unit).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "units": unit_count,
                "users": user_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    """
    Check session service health by verifying session table accessibility.
    """
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False)
        ).count()

        # Expired but not yet cleaned up
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False)
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error"
        }


def check_upload_storage_health() -> dict:
    try:
        directory = upload_dir()
    except OSError:
        current_app.logger.exception("Upload directory check failed")
        return {"status": "unhealthy", "error": "Upload directory unavailable"}

    if not os.access(directory, os.W_OK):
        return {"status": "degraded", "warning": "Upload directory is not writable"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "upload_storage": check_upload_storage_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
        http_status = 503
    elif "degraded" in statuses:
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": checks,
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": current_app.config.get("API_VERSION", "1.0.0"),
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
