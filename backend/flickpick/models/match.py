from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flickpick.models.catalog import CatalogItem
from flickpick.utils.serialization import to_iso

TIER_PERFECT = "perfect"
TIER_STRONG = "strong"
TIER_SOFT = "soft"
TIER_NONE = "none"


@dataclass(slots=True)
class Match:
    catalog_item_id: str
    title: str
    right_swipe_count: int
    total_participants: int
    match_percentage: float
    tier: str
    tmdb_rating: float = 0.0
    display_order: int = 0
    poster_url: str = ""
    synopsis: str = ""
    genres: list[str] = field(default_factory=list)
    runtime: int = 0
    release_year: int = 0
    available_on: list[str] = field(default_factory=list)
    avg_time_on_card_ms: float = 0.0

    @classmethod
    def for_item(
        cls,
        item: CatalogItem,
        right_swipe_count: int,
        total_participants: int,
        match_percentage: float,
        tier: str,
        avg_time_on_card_ms: float = 0.0,
    ) -> "Match":
        return cls(
            catalog_item_id=item.id,
            title=item.title,
            right_swipe_count=right_swipe_count,
            total_participants=total_participants,
            match_percentage=match_percentage,
            tier=tier,
            tmdb_rating=item.tmdb_rating,
            display_order=item.display_order or 0,
            poster_url=item.poster_url,
            synopsis=item.synopsis,
            genres=list(item.genres),
            runtime=item.runtime,
            release_year=item.release_year,
            available_on=list(item.available_on),
            avg_time_on_card_ms=avg_time_on_card_ms,
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "catalogItemId": self.catalog_item_id,
            "title": self.title,
            "posterUrl": self.poster_url,
            "synopsis": self.synopsis,
            "tmdbRating": self.tmdb_rating,
            "availableOn": list(self.available_on),
            "genres": list(self.genres),
            "runtime": self.runtime,
            "releaseYear": self.release_year,
            "rightSwipeCount": self.right_swipe_count,
            "totalParticipants": self.total_participants,
            "matchPercentage": self.match_percentage,
            "tier": self.tier,
            "avgTimeOnCardMs": self.avg_time_on_card_ms,
        }


@dataclass(slots=True)
class SessionHistoryItem:
    session_id: str
    session_code: str
    status: str
    created_at: datetime | None
    participant_count: int
    top_match: Match | None = None

    def to_response(self) -> dict[str, Any]:
        top = None
        if self.top_match is not None:
            top = {
                "title": self.top_match.title,
                "posterUrl": self.top_match.poster_url,
                "matchPercentage": self.top_match.match_percentage,
                "availableOn": list(self.top_match.available_on),
            }
        return {
            "sessionId": self.session_id,
            "sessionCode": self.session_code,
            "status": self.status,
            "createdAt": to_iso(self.created_at),
            "participantCount": self.participant_count,
            "topMatch": top,
        }
