from __future__ import annotations

import random
from datetime import datetime
from typing import Callable

from flickpick.errors import NotFoundError
from flickpick.models import Participant
from flickpick.store import DataStore, get_store
from flickpick.store.base import PARTICIPANTS
from flickpick.utils.serialization import utc_now
from flickpick.utils.text import normalize_nickname
from flickpick.utils.validation import require_non_negative_int

AVATAR_SEED_MAX = 1_000_000


class ParticipantService:
    """Per-session roster. Every write lands on the store's change feed."""

    def __init__(
        self,
        store: DataStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or get_store()
        self.clock = clock

    def add_participant(
        self,
        session_id: str,
        device_id: str,
        nickname: str | None,
        is_host: bool = False,
        avatar_seed: int | None = None,
    ) -> Participant:
        # Same device may join twice; each join is its own participant.
        if avatar_seed is None:
            avatar_seed = random.randint(1, AVATAR_SEED_MAX)

        row = self.store.insert(
            PARTICIPANTS,
            {
                "session_id": session_id,
                "device_id": device_id,
                "nickname": normalize_nickname(nickname, default="Host" if is_host else "Guest"),
                "avatar_seed": int(avatar_seed),
                "is_host": bool(is_host),
                "swipe_progress": 0,
                "joined_at": self.clock(),
            },
        )
        return Participant.from_mapping(row)

    def get_participant(self, participant_id: str) -> Participant:
        row = self.store.get(PARTICIPANTS, participant_id)
        if row is None:
            raise NotFoundError("Participant not found.")
        return Participant.from_mapping(row)

    def list_participants(self, session_id: str) -> list[Participant]:
        rows = self.store.query(PARTICIPANTS, {"session_id": session_id}, order_by="joined_at")
        return [Participant.from_mapping(row) for row in rows]

    def count_participants(self, session_id: str) -> int:
        return len(self.store.query(PARTICIPANTS, {"session_id": session_id}))

    def list_by_device(self, device_id: str) -> list[Participant]:
        rows = self.store.query(PARTICIPANTS, {"device_id": device_id}, order_by="joined_at")
        return [Participant.from_mapping(row) for row in rows]

    def advance_progress(self, participant_id: str, new_progress: int) -> Participant:
        """Plain set; callers pass increasing values."""
        new_progress = require_non_negative_int("swipe_progress", new_progress)
        row = self.store.update(PARTICIPANTS, participant_id, {"swipe_progress": new_progress})
        return Participant.from_mapping(row)
