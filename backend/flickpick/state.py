from __future__ import annotations

from dataclasses import dataclass, field

from flickpick.models import Participant, Session, SessionFilters


@dataclass(slots=True)
class SessionState:
    """
    One participant's handle on the session they are in.

    Lifecycle: bind() on host/join/resume, mutated while swiping
    (current_card_index), reset() after finalize or when leaving.
    Passed explicitly into every LifecycleService operation.
    """

    session_id: str | None = None
    session_code: str | None = None
    participant_id: str | None = None
    match_threshold: float = 0.5
    is_host: bool = False
    nickname: str = ""
    selected_services: list[str] = field(default_factory=list)
    filters: SessionFilters = field(default_factory=SessionFilters)
    current_card_index: int = 0
    catalog_size: int = 0

    @classmethod
    def bind(cls, session: Session, participant: Participant, catalog_size: int = 0) -> "SessionState":
        return cls(
            session_id=session.id,
            session_code=session.code,
            participant_id=participant.id,
            match_threshold=session.match_threshold,
            is_host=participant.is_host,
            nickname=participant.nickname,
            selected_services=list(session.streaming_services),
            filters=session.filters,
            current_card_index=participant.swipe_progress,
            catalog_size=catalog_size,
        )

    @property
    def is_bound(self) -> bool:
        return self.session_id is not None and self.participant_id is not None

    @property
    def finished_swiping(self) -> bool:
        return self.catalog_size > 0 and self.current_card_index >= self.catalog_size

    def reset(self) -> None:
        self.session_id = None
        self.session_code = None
        self.participant_id = None
        self.match_threshold = 0.5
        self.is_host = False
        self.nickname = ""
        self.selected_services = []
        self.filters = SessionFilters()
        self.current_card_index = 0
        self.catalog_size = 0

    def to_response(self) -> dict:
        return {
            "sessionId": self.session_id,
            "sessionCode": self.session_code,
            "participantId": self.participant_id,
            "matchThreshold": self.match_threshold,
            "isHost": self.is_host,
            "nickname": self.nickname,
            "currentCardIndex": self.current_card_index,
            "catalogSize": self.catalog_size,
        }
