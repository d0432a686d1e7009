from __future__ import annotations

from flask import Blueprint, jsonify, request

from flickpick.services.history_service import HistoryService
from flickpick.utils.device import device_id_or_local

history_bp = Blueprint("history", __name__, url_prefix="/api/history")


@history_bp.get("")
def list_history():
    """
    GET /api/history?deviceId=...   (deviceId defaults to this installation's id)

    Sessions this device took part in, newest first, each with its top match.
    """
    history = HistoryService().list_history(device_id_or_local(request.args.get("deviceId")))
    return jsonify({"sessions": [item.to_response() for item in history]}), 200
