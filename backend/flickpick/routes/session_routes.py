from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from flickpick.models import CatalogItem, SessionFilters
from flickpick.services.catalog_builders import CatalogBuilder, StaticCatalogBuilder
from flickpick.services.catalog_service import CatalogService
from flickpick.services.lifecycle_service import LifecycleService
from flickpick.services.participant_service import ParticipantService
from flickpick.services.session_service import SessionService
from flickpick.utils.device import device_id_or_local
from flickpick.utils.validation import require_fields

sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


def default_catalog_builder() -> CatalogBuilder | None:
    """CSV file when configured, else TMDB when a key is set, else nothing."""
    csv_path = current_app.config.get("CATALOG_CSV_PATH")
    if csv_path:
        from flickpick.services.csv_catalog_service import CsvCatalogBuilder

        return CsvCatalogBuilder(csv_path)
    if current_app.config.get("TMDB_API_KEY"):
        from flickpick.services.tmdb_service import TmdbCatalogBuilder

        return TmdbCatalogBuilder()
    return None


@sessions_bp.post("")
def host_session():
    """
    POST /api/sessions
    Body:
    {
      "deviceId"?: string,        # defaults to this installation's id
      "nickname"?: string,
      "services": string[],
      "filters"?: SessionFilters,
      "matchThreshold"?: number,
      "avatarSeed"?: number,
      "catalog"?: CatalogItem[]   # skips the configured catalog source
    }

    Returns 201 with { "state": SessionState, "session": Session }
    """
    data = request.get_json(silent=True) or {}
    device_id = device_id_or_local(data.get("deviceId"))
    services = data.get("services") or []

    if not isinstance(services, list) or not services:
        return jsonify({"error": "services must be a non-empty list"}), 400

    if "catalog" in data:
        builder = StaticCatalogBuilder(CatalogItem.from_request(item) for item in data.get("catalog") or [])
    else:
        builder = default_catalog_builder()

    lifecycle = LifecycleService(catalog_builder=builder)
    state = lifecycle.host_session(
        device_id=device_id,
        nickname=data.get("nickname"),
        services=services,
        filters=SessionFilters.from_mapping(data.get("filters")),
        threshold=data.get("matchThreshold"),
        avatar_seed=data.get("avatarSeed"),
    )
    session = lifecycle.sessions.get_session(state.session_id)
    return jsonify({"state": state.to_response(), "session": session.to_response()}), 201


@sessions_bp.get("/lookup")
def lookup_session():
    """GET /api/sessions/lookup?code=ABC234"""
    code = (request.args.get("code") or "").strip()
    if not code:
        return jsonify({"error": "code is required"}), 400

    session = SessionService().lookup_by_code(code)
    if session is None:
        return jsonify({"error": "No such session."}), 404
    return jsonify(session.to_response()), 200


@sessions_bp.post("/join")
def join_session():
    """
    POST /api/sessions/join
    Body: { "code": string, "deviceId"?: string, "nickname"?: string, "avatarSeed"?: number }
    """
    data = request.get_json(silent=True) or {}
    [code] = require_fields(data, "code")
    device_id = device_id_or_local(data.get("deviceId"))

    state = LifecycleService().join_session(
        code, device_id, data.get("nickname"), avatar_seed=data.get("avatarSeed")
    )
    return jsonify({"state": state.to_response()}), 201


@sessions_bp.get("/<session_id>")
def get_session(session_id: str):
    service = SessionService()
    session = service.get_session(session_id)
    return jsonify(session.to_response(status=service.effective_status(session))), 200


@sessions_bp.post("/<session_id>/start")
def start_session(session_id: str):
    """
    POST /api/sessions/<session_id>/start
    Body: { "participantId": string }   # must be the host
    """
    data = request.get_json(silent=True) or {}
    [participant_id] = require_fields(data, "participantId")

    lifecycle = LifecycleService()
    state = lifecycle.resume(session_id, participant_id)
    session = lifecycle.start(state)
    return jsonify(session.to_response()), 200


@sessions_bp.get("/<session_id>/catalog")
def get_catalog(session_id: str):
    SessionService().get_session(session_id)
    items = CatalogService().fetch_catalog(session_id)
    return jsonify({"items": [item.to_response() for item in items]}), 200


@sessions_bp.get("/<session_id>/participants")
def list_participants(session_id: str):
    SessionService().get_session(session_id)
    participants = ParticipantService().list_participants(session_id)
    return jsonify({"participants": [p.to_response() for p in participants]}), 200

