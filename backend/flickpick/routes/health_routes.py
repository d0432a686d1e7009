from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health_check():
    return jsonify(
        {
            "status": "ok",
            "store": current_app.config.get("STORE_BACKEND"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
