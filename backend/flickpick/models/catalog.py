from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Mapping


@dataclass(slots=True)
class CatalogItem:
    id: str
    session_id: str
    title: str
    tmdb_id: int | None = None
    poster_url: str = ""
    synopsis: str = ""
    genres: list[str] = field(default_factory=list)
    runtime: int = 0
    release_year: int = 0
    tmdb_rating: float = 0.0
    available_on: list[str] = field(default_factory=list)
    display_order: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["genres"] = list(self.genres)
        payload["available_on"] = list(self.available_on)
        return payload

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "tmdbId": self.tmdb_id,
            "title": self.title,
            "posterUrl": self.poster_url,
            "synopsis": self.synopsis,
            "genres": list(self.genres),
            "runtime": self.runtime,
            "releaseYear": self.release_year,
            "tmdbRating": self.tmdb_rating,
            "availableOn": list(self.available_on),
            "displayOrder": self.display_order,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CatalogItem":
        display_order = data.get("display_order")
        return cls(
            id=data.get("id") or "",
            session_id=data.get("session_id") or "",
            title=data.get("title") or "",
            tmdb_id=data.get("tmdb_id"),
            poster_url=data.get("poster_url") or "",
            synopsis=data.get("synopsis") or "",
            genres=list(data.get("genres") or []),
            runtime=int(data.get("runtime") or 0),
            release_year=int(data.get("release_year") or 0),
            tmdb_rating=float(data.get("tmdb_rating") or 0.0),
            available_on=list(data.get("available_on") or []),
            display_order=int(display_order) if display_order is not None else None,
        )

    @classmethod
    def from_request(cls, data: Mapping[str, Any]) -> "CatalogItem":
        """Build an unsaved item from a camelCase request payload."""
        display_order = data.get("displayOrder")
        return cls(
            id="",
            session_id="",
            title=str(data.get("title") or ""),
            tmdb_id=data.get("tmdbId"),
            poster_url=data.get("posterUrl") or "",
            synopsis=data.get("synopsis") or "",
            genres=list(data.get("genres") or []),
            runtime=int(data.get("runtime") or 0),
            release_year=int(data.get("releaseYear") or 0),
            tmdb_rating=float(data.get("tmdbRating") or 0.0),
            available_on=list(data.get("availableOn") or []),
            display_order=int(display_order) if display_order is not None else None,
        )
