"""
System health endpoint.

Checks database connectivity and reports the settings the order engine
depends on (tax mode, configured tax rate).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Order, Product
from ..services.settings_service import get_settings
from backoffice.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "orders": order_count,
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


def check_settings_health() -> dict:
    """A missing Settings row is not fatal (tax rate falls back to 0)."""
    try:
        settings = get_settings()
    except Exception:
        current_app.logger.exception("Settings health check failed")
        return {"status": "unhealthy", "error": "Settings error"}

    details = {"tax_mode": current_app.config["ORDER_TAX_MODE"]}
    if settings is None:
        return {"status": "degraded", "warning": "No settings row; run 'flask system init'", "details": details}

    details["tax_rate_bps"] = settings.tax_rate_bps
    return {"status": "healthy", "details": details}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    database_health = check_database_health()
    settings_health = check_settings_health()

    all_checks = [database_health, settings_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200  # Degraded is still operational
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "settings": settings_health,
        }
    }, http_status
