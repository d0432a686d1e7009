from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from flickpick.config import config_value
from flickpick.errors import (
    ExhaustedError,
    LifecycleError,
    NotFoundError,
    PermissionDeniedError,
    TransientStoreError,
)
from flickpick.models import Participant, Session, SessionFilters, Swipe
from flickpick.models.session import (
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_EXPIRED,
    STATUS_LOBBY,
)
from flickpick.services.catalog_builders import CatalogBuilder
from flickpick.services.catalog_service import CatalogService
from flickpick.services.participant_service import ParticipantService
from flickpick.services.session_service import SessionService
from flickpick.services.swipe_service import SwipeService
from flickpick.state import SessionState
from flickpick.store import DataStore, get_store
from flickpick.utils.serialization import utc_now

logger = logging.getLogger(__name__)

# No I, O, 0 or 1: codes get read aloud and typed on phones
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
CODE_ATTEMPTS = 3

# status -> statuses the host may move it to
ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATUS_LOBBY: (STATUS_ACTIVE,),
    STATUS_ACTIVE: (STATUS_COMPLETED,),
    STATUS_COMPLETED: (),
    STATUS_EXPIRED: (),
}


@dataclass(slots=True)
class SwipeOutcome:
    """
    Result of LifecycleService.swipe.

    Recording the swipe and advancing progress are separate writes; either
    may fail on its own. Failures are logged and collected here so the
    caller can offer a retry.
    """

    swipe: Swipe | None = None
    progress: int | None = None
    errors: list[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_response(self) -> dict:
        return {
            "ok": self.ok,
            "swipeId": self.swipe.id if self.swipe else None,
            "recorded": self.swipe is not None,
            "progress": self.progress,
            "errors": [str(exc) for exc in self.errors],
        }


class LifecycleService:
    """
    Session state machine: lobby -> active -> completed, expiry implied by time.

    Owns the multi-step flows (host, join, swipe, finalize) and the rules the
    plain stores leave open: who may trigger a transition, when swiping is
    allowed, and how a host's pick is recorded.
    """

    def __init__(
        self,
        store: DataStore | None = None,
        catalog_builder: CatalogBuilder | None = None,
        min_participants: int | None = None,
        default_threshold: float | None = None,
        ttl_hours: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or get_store()
        self.catalog_builder = catalog_builder
        self.min_participants = (
            min_participants
            if min_participants is not None
            else config_value("MIN_PARTICIPANTS_TO_START", 2)
        )
        self.default_threshold = (
            default_threshold
            if default_threshold is not None
            else config_value("DEFAULT_MATCH_THRESHOLD", 0.5)
        )
        self.rng = rng or random.SystemRandom()
        self.clock = clock

        self.sessions = SessionService(self.store, ttl_hours=ttl_hours, clock=clock)
        self.participants = ParticipantService(self.store, clock=clock)
        self.catalog = CatalogService(self.store)
        self.swipes = SwipeService(self.store, clock=clock)

    # ---------- codes ----------

    def generate_unique_code(self) -> str:
        for attempt in range(1, CODE_ATTEMPTS + 1):
            code = "".join(self.rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not self.sessions.code_in_use(code):
                return code
            logger.info("Session code collision on attempt %d", attempt)
        raise ExhaustedError(f"Failed to generate unique code after {CODE_ATTEMPTS} attempts")

    # ---------- entering a session ----------

    def host_session(
        self,
        device_id: str,
        nickname: str | None,
        services: list[str],
        filters: SessionFilters | None = None,
        threshold: float | None = None,
        avatar_seed: int | None = None,
        catalog_builder: CatalogBuilder | None = None,
    ) -> SessionState:
        """
        Create a lobby, seed its catalog and add the host as first participant.

        An empty catalog is allowed; such a session can only be finalized
        without a winner.
        """
        filters = filters or SessionFilters()
        builder = catalog_builder or self.catalog_builder

        code = self.generate_unique_code()
        session = self.sessions.create_session(
            code,
            host_device_id=device_id,
            services=services,
            filters=filters,
            threshold=self.default_threshold if threshold is None else threshold,
        )

        items = builder.build(filters, list(services)) if builder is not None else []
        if not items:
            logger.warning("Session %s starts with an empty catalog", session.code)
        catalog = self.catalog.seed_catalog(session.id, items)

        host = self.participants.add_participant(
            session.id, device_id, nickname, is_host=True, avatar_seed=avatar_seed
        )
        return SessionState.bind(session, host, catalog_size=len(catalog))

    def join_session(
        self,
        code: str,
        device_id: str,
        nickname: str | None,
        avatar_seed: int | None = None,
    ) -> SessionState:
        session = self.sessions.lookup_by_code(code)
        if session is None:
            raise NotFoundError("No such session.")

        participant = self.participants.add_participant(
            session.id, device_id, nickname, is_host=False, avatar_seed=avatar_seed
        )
        catalog_size = len(self.catalog.fetch_catalog(session.id))
        return SessionState.bind(session, participant, catalog_size=catalog_size)

    def resume(self, session_id: str, participant_id: str) -> SessionState:
        """Rebuild a handle for a participant already in the session."""
        session = self.sessions.get_session(session_id)
        participant = self._participant_in(session, participant_id)
        catalog_size = len(self.catalog.fetch_catalog(session.id))
        return SessionState.bind(session, participant, catalog_size=catalog_size)

    # ---------- transitions ----------

    def start(self, state: SessionState) -> Session:
        session = self._load(state)
        self._require_host(state, "start")
        self._require_transition(session, STATUS_ACTIVE)

        count = self.participants.count_participants(session.id)
        if count < self.min_participants:
            raise LifecycleError(
                f"Need at least {self.min_participants} participants to start (have {count})"
            )
        return self.sessions.transition_status(session.id, STATUS_ACTIVE)

    def finalize(self, state: SessionState, selected_match_id: str | None = None) -> Session:
        """
        Close the session, optionally recording the host's pick first.

        The pick may be any title in the catalog; it is not limited to the
        aggregator's matches. Resets `state` on success.
        """
        session = self._load(state)
        self._require_host(state, "finalize")
        self._require_transition(session, STATUS_COMPLETED)

        if selected_match_id:
            self.catalog.get_item(selected_match_id, session_id=session.id)
            self.sessions.set_selected_winner(session.id, selected_match_id)

        session = self.sessions.transition_status(session.id, STATUS_COMPLETED)
        logger.info("Session %s finalized (winner=%s)", session.code, session.selected_match_id)
        state.reset()
        return session

    def status_of(self, session_id: str) -> str:
        return self.sessions.effective_status(self.sessions.get_session(session_id))

    # ---------- swiping ----------

    def swipe(
        self,
        state: SessionState,
        catalog_item_id: str,
        direction: str,
        time_on_card_ms: int = 0,
    ) -> SwipeOutcome:
        session = self._load(state)
        status = self.sessions.effective_status(session)
        if status != STATUS_ACTIVE:
            raise LifecycleError(f"Swiping is not allowed while the session is {status}")

        item = self.catalog.get_item(catalog_item_id, session_id=session.id)
        outcome = SwipeOutcome()

        try:
            outcome.swipe = self.swipes.record_swipe(
                state.participant_id, item.id, session.id, direction, time_on_card_ms
            )
        except TransientStoreError as exc:
            logger.warning("Swipe by %s on %s not recorded: %s", state.participant_id, item.id, exc)
            outcome.errors.append(exc)

        # a card moves progress to its own position; re-swiping a passed card
        # (a retried request) leaves it where it is
        new_progress = max(state.current_card_index, item.display_order or 0)
        if state.catalog_size:
            new_progress = min(new_progress, state.catalog_size)

        try:
            self.participants.advance_progress(state.participant_id, new_progress)
            outcome.progress = new_progress
        except TransientStoreError as exc:
            logger.warning("Progress for %s not saved: %s", state.participant_id, exc)
            outcome.errors.append(exc)

        # The local cursor moves on either way; the card is gone from the deck.
        state.current_card_index = new_progress
        return outcome

    # ---------- helpers ----------

    def _load(self, state: SessionState) -> Session:
        if not state.is_bound:
            raise LifecycleError("Not in a session")
        return self.sessions.get_session(state.session_id)

    def _participant_in(self, session: Session, participant_id: str) -> Participant:
        participant = self.participants.get_participant(participant_id)
        if participant.session_id != session.id:
            raise NotFoundError("Participant not found.")
        return participant

    def _require_host(self, state: SessionState, action: str) -> None:
        participant = self.participants.get_participant(state.participant_id)
        if participant.session_id != state.session_id or not participant.is_host:
            raise PermissionDeniedError(f"Only the host can {action} the session")

    def _require_transition(self, session: Session, target: str) -> None:
        current = self.sessions.effective_status(session)
        if target not in ALLOWED_TRANSITIONS.get(current, ()):
            raise LifecycleError(f"Cannot move session from {current} to {target}")
