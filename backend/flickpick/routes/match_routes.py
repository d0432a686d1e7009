from __future__ import annotations

import json
import logging
import queue
from typing import Iterator

from flask import Blueprint, Response, jsonify, request, stream_with_context

from flickpick.models import Match
from flickpick.services.lifecycle_service import LifecycleService
from flickpick.services.match_service import MatchService
from flickpick.services.realtime_service import RealtimeService
from flickpick.services.session_service import SessionService
from flickpick.store import get_store
from flickpick.utils.validation import require_fields

logger = logging.getLogger(__name__)

match_bp = Blueprint("match", __name__, url_prefix="/api/sessions")

# Idle time before a keep-alive comment is sent on the match stream
STREAM_KEEPALIVE_SEC = 15.0


def format_sse(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def match_event_stream(realtime: RealtimeService, session_id: str) -> Iterator[str]:
    """
    SSE frames for a session's live standings.

    Every push from the watcher becomes a "matches" event; feed problems
    become "status" events so the client can show a retry affordance.
    """
    events: queue.Queue[tuple[str, object]] = queue.Queue()

    def on_matches(matches: list[Match]) -> None:
        events.put(("matches", [m.to_response() for m in matches]))

    def on_status(status: str, error: Exception | None) -> None:
        events.put(("status", {"status": status, "error": str(error) if error else None}))

    watcher = realtime.watch_matches(session_id, on_matches, on_status)
    try:
        while True:
            try:
                event, payload = events.get(timeout=STREAM_KEEPALIVE_SEC)
            except queue.Empty:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event, payload)
    finally:
        watcher.stop()
        logger.info("Match stream closed for session %s", session_id)


@match_bp.post("/<session_id>/swipes")
def record_swipe(session_id: str):
    """
    POST /api/sessions/<session_id>/swipes
    Body:
    {
      "participantId": string,
      "catalogItemId": string,
      "direction": "left" | "right",
      "timeOnCardMs"?: number
    }

    The swipe and the progress update are separate writes. A partial
    failure answers 503 with the outcome so the client can retry.
    """
    data = request.get_json(silent=True) or {}
    participant_id, catalog_item_id = require_fields(data, "participantId", "catalogItemId")
    direction = (data.get("direction") or "").strip().lower()

    if direction not in {"left", "right"}:
        return jsonify({"error": "direction must be 'left' or 'right'"}), 400

    lifecycle = LifecycleService()
    state = lifecycle.resume(session_id, participant_id)
    outcome = lifecycle.swipe(state, catalog_item_id, direction, data.get("timeOnCardMs") or 0)

    return jsonify(outcome.to_response()), 200 if outcome.ok else 503


@match_bp.get("/<session_id>/matches")
def get_matches(session_id: str):
    """
    GET /api/sessions/<session_id>/matches

    Current standings; valid while swiping is still in progress.
    """
    matches = MatchService().get_matches(session_id)
    return jsonify({"matches": [m.to_response() for m in matches]}), 200


@match_bp.get("/<session_id>/matches/stream")
def stream_matches(session_id: str):
    """GET /api/sessions/<session_id>/matches/stream (text/event-stream)"""
    realtime = RealtimeService(get_store())
    # fail fast on an unknown session instead of opening a dead stream
    session = SessionService(realtime.store).get_session(session_id)

    return Response(
        stream_with_context(match_event_stream(realtime, session.id)),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@match_bp.post("/<session_id>/finalize")
def finalize_session(session_id: str):
    """
    POST /api/sessions/<session_id>/finalize
    Body: { "participantId": string, "selectedMatchId"?: string | null }
    """
    data = request.get_json(silent=True) or {}
    [participant_id] = require_fields(data, "participantId")

    lifecycle = LifecycleService()
    state = lifecycle.resume(session_id, participant_id)
    session = lifecycle.finalize(state, data.get("selectedMatchId") or None)
    return jsonify(session.to_response()), 200
