# backend/partner_portal/routes/system.py
"""
System health and version endpoints.

Health reports database reachability plus the in-process realtime state
(open views) so a deployment can tell "DB down" from "nobody watching".
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Restaurant, Store
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        restaurant_count = db.session.query(Restaurant).count()
        store_count = db.session.query(Store).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "restaurants": restaurant_count,
                "stores": store_count,
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


def check_realtime_health() -> dict:
    views = current_app.extensions.get("partner_views")
    feed = current_app.extensions.get("change_feed")
    if views is None or feed is None:
        return {"status": "unhealthy", "error": "Realtime components not initialised"}
    return {
        "status": "healthy",
        "details": {
            "open_views": len(views),
        }
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    realtime_health = check_realtime_health()

    all_checks = [database_health, realtime_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "realtime": realtime_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info. Never exposes secrets or DB credentials."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
