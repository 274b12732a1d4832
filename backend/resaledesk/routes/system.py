# Overview: Flask API routes for system health; returns JSON responses.

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow, to_utc_z


system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "error"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    ok = database["status"] == "ok"
    return jsonify({
        "status": "ok" if ok else "degraded",
        "database": database,
        "timestamp": to_utc_z(utcnow()),
    }), (200 if ok else 503)
