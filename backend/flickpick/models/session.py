from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping

from flickpick.utils.serialization import ensure_utc, to_iso

STATUS_LOBBY = "lobby"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"

SESSION_STATUSES = (STATUS_LOBBY, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_EXPIRED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_EXPIRED)


@dataclass(slots=True)
class SessionFilters:
    genres: list[str] = field(default_factory=list)
    mood: str | None = None
    runtime_range: str | None = "any"        # "short" | "medium" | "long" | "any"
    release_year_range: str | None = "any"   # "classic" | "2000s" | "2010s" | "recent" | "any"
    min_rating: float | None = None
    certifications: list[str] = field(default_factory=list)
    animation: str | None = None             # "include" | "exclude" | None
    content_type: str = "movies"             # "movies" | "tv" | "both"

    def to_dict(self) -> dict[str, Any]:
        return {
            "genres": list(self.genres),
            "mood": self.mood,
            "runtime_range": self.runtime_range,
            "release_year_range": self.release_year_range,
            "min_rating": self.min_rating,
            "certifications": list(self.certifications),
            "animation": self.animation,
            "content_type": self.content_type,
        }

    def to_response(self) -> dict[str, Any]:
        return {
            "genres": list(self.genres),
            "mood": self.mood,
            "runtimeRange": self.runtime_range,
            "releaseYearRange": self.release_year_range,
            "minRating": self.min_rating,
            "certifications": list(self.certifications),
            "animation": self.animation,
            "contentType": self.content_type,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SessionFilters":
        """Accepts both stored (snake_case) and request (camelCase) shapes."""
        data = data or {}

        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        min_rating = pick("min_rating", "minRating")

        return cls(
            genres=list(data.get("genres") or []),
            mood=data.get("mood"),
            runtime_range=pick("runtime_range", "runtimeRange", "any"),
            release_year_range=pick("release_year_range", "releaseYearRange", "any"),
            min_rating=float(min_rating) if min_rating not in (None, "") else None,
            certifications=list(data.get("certifications") or []),
            animation=data.get("animation"),
            content_type=pick("content_type", "contentType", "movies") or "movies",
        )


@dataclass(slots=True)
class Session:
    id: str
    code: str
    status: str = STATUS_LOBBY
    match_threshold: float = 0.5
    host_device_id: str | None = None
    streaming_services: list[str] = field(default_factory=list)
    filters: SessionFilters = field(default_factory=SessionFilters)
    created_at: datetime | None = None
    expires_at: datetime | None = None
    selected_match_id: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "match_threshold": self.match_threshold,
            "host_device_id": self.host_device_id,
            "streaming_services": list(self.streaming_services),
            "filters": self.filters.to_dict(),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "selected_match_id": self.selected_match_id,
        }

    def to_response(self, status: str | None = None) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "status": status or self.status,
            "matchThreshold": self.match_threshold,
            "hostDeviceId": self.host_device_id,
            "streamingServices": list(self.streaming_services),
            "filters": self.filters.to_response(),
            "createdAt": to_iso(self.created_at),
            "expiresAt": to_iso(self.expires_at),
            "selectedMatchId": self.selected_match_id,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Session":
        """Load a stored row, ignoring unknown fields."""
        allowed = {f.name for f in fields(cls)}
        payload = {k: v for k, v in dict(data).items() if k in allowed}

        if "id" not in payload or "code" not in payload:
            raise ValueError("Invalid session document: missing id or code")

        payload["filters"] = SessionFilters.from_mapping(payload.get("filters"))
        payload["streaming_services"] = list(payload.get("streaming_services") or [])
        payload["created_at"] = ensure_utc(payload.get("created_at"))
        payload["expires_at"] = ensure_utc(payload.get("expires_at"))
        if payload.get("match_threshold") is not None:
            payload["match_threshold"] = float(payload["match_threshold"])
        return cls(**payload)
