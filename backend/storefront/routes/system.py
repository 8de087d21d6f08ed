# backend/storefront/routes/system.py
"""
System health endpoint.

Probes the catalog tables and the session table so a deploy can be checked
without signing in. 200 when every probe passes, 503 otherwise.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, Product, SessionToken
from storefront.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _probe(name: str, query_details) -> dict:
    start = time.perf_counter()
    try:
        details = query_details()
    except SQLAlchemyError:
        current_app.logger.exception("Health probe %s failed", name)
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start), "error": f"{name} unavailable"}
    return {"status": "healthy", "latency_ms": _elapsed_ms(start), "details": details}


def _catalog_details() -> dict:
    return {
        "active_products": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
        "orders": db.session.query(Order).count(),
    }


def _session_details() -> dict:
    live = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    return {
        "active_sessions": live.filter(SessionToken.expires_at >= utcnow()).count(),
        "expired_pending_cleanup": live.filter(SessionToken.expires_at < utcnow()).count(),
    }


@system_bp.get("/health")
def health():
    start = time.perf_counter()
    checks = {
        "database": _probe("database", _catalog_details),
        "sessions": _probe("sessions", _session_details),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start),
        "checks": checks,
    }
    return body, 200 if healthy else 503
