from __future__ import annotations

from datetime import datetime
from typing import Callable

from flickpick.models import Swipe
from flickpick.models.swipe import SWIPE_DIRECTIONS
from flickpick.store import DataStore, get_store
from flickpick.store.base import SWIPES
from flickpick.utils.serialization import utc_now
from flickpick.utils.validation import require_choice, require_non_negative_int


class SwipeService:
    """
    Append-only swipe ledger.

    There is no idempotency key: a retried request writes a second row.
    MatchTally resolves duplicates by keeping each participant's latest
    direction per title.
    """

    def __init__(
        self,
        store: DataStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or get_store()
        self.clock = clock

    def record_swipe(
        self,
        participant_id: str,
        catalog_item_id: str,
        session_id: str,
        direction: str,
        time_on_card_ms: int = 0,
    ) -> Swipe:
        direction = require_choice("direction", direction, SWIPE_DIRECTIONS)
        time_on_card_ms = require_non_negative_int("time_on_card_ms", time_on_card_ms)

        row = self.store.insert(
            SWIPES,
            {
                "participant_id": participant_id,
                "catalog_item_id": catalog_item_id,
                "session_id": session_id,
                "direction": direction,
                "time_on_card_ms": time_on_card_ms,
                "swiped_at": self.clock(),
            },
        )
        return Swipe.from_mapping(row)

    def list_swipes(self, session_id: str) -> list[Swipe]:
        """Ledger order: oldest first, ties in insertion order."""
        rows = self.store.query(SWIPES, {"session_id": session_id}, order_by="swiped_at")
        return [Swipe.from_mapping(row) for row in rows]

