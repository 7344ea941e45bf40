# backend/bonusboard/routes/system.py
"""
System health endpoint.

Reports database reachability and which stores have Dapic credentials.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db, get_dapic_client
from ..models import Sale, SalesGoal, User
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "goals": db.session.query(SalesGoal).count(),
            "sales": db.session.query(Sale).count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200
    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "dapic": {"configured_stores": get_dapic_client().get_available_stores()},
        },
    }
    return response, http_status
