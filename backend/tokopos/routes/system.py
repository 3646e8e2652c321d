# backend/tokopos/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the fixed resources created by
`flask system init` (central warehouse, general customer) are present.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Member, Store, Warehouse
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"stores": store_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_provisioning_health() -> dict:
    """Degraded (not unhealthy) when setup has not been run yet."""
    start_time = time.time()
    try:
        warehouse_name = current_app.config.get("CENTRAL_WAREHOUSE_NAME", "Gudang Pusat")
        has_warehouse = db.session.query(Warehouse).filter_by(name=warehouse_name).first() is not None
        has_default_customer = (
            db.session.query(Member).filter(Member.is_default_customer.is_(True)).first() is not None
        )
        elapsed_ms = (time.time() - start_time) * 1000

        missing = []
        if not has_warehouse:
            missing.append("central_warehouse")
        if not has_default_customer:
            missing.append("default_customer")

        result = {
            "status": "degraded" if missing else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "central_warehouse": has_warehouse,
                "default_customer": has_default_customer,
            },
        }
        if missing:
            result["warning"] = f"Run 'flask system init'; missing: {', '.join(missing)}"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Provisioning health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Provisioning check error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    provisioning_health = check_provisioning_health()

    all_checks = [database_health, provisioning_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "provisioning": provisioning_health,
        },
    }
    return response, http_status
