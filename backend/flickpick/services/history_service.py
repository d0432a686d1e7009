from __future__ import annotations

import logging

from flickpick.models import Match, SessionHistoryItem
from flickpick.services.match_service import MatchService
from flickpick.services.participant_service import ParticipantService
from flickpick.services.session_service import SessionService
from flickpick.store import DataStore, get_store

logger = logging.getLogger(__name__)


class HistoryService:
    """
    "My sessions" for one device.

    The device id only scopes the listing; it is not an auth token.
    """

    def __init__(self, store: DataStore | None = None) -> None:
        self.store = store or get_store()
        self.sessions = SessionService(self.store)
        self.participants = ParticipantService(self.store)
        self.matches = MatchService(self.store)

    def list_history(self, device_id: str) -> list[SessionHistoryItem]:
        seen: set[str] = set()
        history: list[SessionHistoryItem] = []

        for participant in self.participants.list_by_device(device_id):
            # a device that joined the same session twice shows it once
            if participant.session_id in seen:
                continue
            seen.add(participant.session_id)

            session = self.sessions.get_session(participant.session_id)
            tally, threshold = self.matches.build_tally(session.id)
            history.append(
                SessionHistoryItem(
                    session_id=session.id,
                    session_code=session.code,
                    status=self.sessions.effective_status(session),
                    created_at=session.created_at,
                    participant_count=tally.total_participants,
                    top_match=self._top_match(tally, threshold, session.selected_match_id),
                )
            )

        history.sort(key=lambda item: item.created_at, reverse=True)
        return history

    @staticmethod
    def _top_match(tally, threshold: float, selected_match_id: str | None) -> Match | None:
        """The host's pick when there is one, otherwise the best current match."""
        if selected_match_id:
            picked = tally.score(selected_match_id, threshold)
            if picked is not None:
                return picked
            logger.warning("Selected winner %s is not in the session catalog", selected_match_id)

        matches = tally.snapshot(threshold)
        return matches[0] if matches else None
