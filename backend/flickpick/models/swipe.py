from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from flickpick.utils.serialization import ensure_utc

SWIPE_LEFT = "left"
SWIPE_RIGHT = "right"
SWIPE_DIRECTIONS = (SWIPE_LEFT, SWIPE_RIGHT)


@dataclass(slots=True, frozen=True)
class Swipe:
    id: str
    participant_id: str
    catalog_item_id: str
    session_id: str
    direction: str
    time_on_card_ms: int = 0
    swiped_at: datetime | None = None

    @property
    def is_right(self) -> bool:
        return self.direction == SWIPE_RIGHT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "participant_id": self.participant_id,
            "catalog_item_id": self.catalog_item_id,
            "session_id": self.session_id,
            "direction": self.direction,
            "time_on_card_ms": self.time_on_card_ms,
            "swiped_at": self.swiped_at,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Swipe":
        return cls(
            id=data.get("id") or "",
            participant_id=data["participant_id"],
            catalog_item_id=data["catalog_item_id"],
            session_id=data["session_id"],
            direction=data["direction"],
            time_on_card_ms=int(data.get("time_on_card_ms") or 0),
            swiped_at=ensure_utc(data.get("swiped_at")),
        )
