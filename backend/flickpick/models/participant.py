from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from flickpick.utils.serialization import ensure_utc, to_iso


@dataclass(slots=True)
class Participant:
    id: str
    session_id: str
    device_id: str
    nickname: str = "Guest"
    avatar_seed: int = 0
    is_host: bool = False
    swipe_progress: int = 0
    joined_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "device_id": self.device_id,
            "nickname": self.nickname,
            "avatar_seed": self.avatar_seed,
            "is_host": self.is_host,
            "swipe_progress": self.swipe_progress,
            "joined_at": self.joined_at,
        }

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "nickname": self.nickname,
            "avatarSeed": self.avatar_seed,
            "isHost": self.is_host,
            "swipeProgress": self.swipe_progress,
            "joinedAt": to_iso(self.joined_at),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Participant":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            device_id=data.get("device_id") or "",
            nickname=data.get("nickname") or "Guest",
            avatar_seed=int(data.get("avatar_seed") or 0),
            is_host=bool(data.get("is_host")),
            swipe_progress=int(data.get("swipe_progress") or 0),
            joined_at=ensure_utc(data.get("joined_at")),
        )
