from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from flickpick.constants import (
    CATALOG_SIZE,
    RELEASE_YEAR_RANGES,
    RUNTIME_RANGES,
    resolve_genres,
)
from flickpick.errors import CatalogBuildError
from flickpick.models import CatalogItem, SessionFilters
from flickpick.services.catalog_builders import interleave, renumber

logger = logging.getLogger(__name__)

# Columns of a prepared catalog file (see scripts/prepare_catalog.py)
CATALOG_COLUMNS = [
    "tmdb_id",
    "title",
    "content_type",
    "genres",
    "runtime",
    "release_year",
    "tmdb_rating",
    "available_on",
    "poster_url",
    "synopsis",
]

LIST_SEPARATOR = "|"


def split_list(raw) -> list[str]:
    if not isinstance(raw, str):
        return []
    return [part.strip() for part in raw.split(LIST_SEPARATOR) if part.strip()]


def load_catalog_frame(path: str | Path) -> pd.DataFrame:
    try:
        df = pd.read_csv(path)
    except (OSError, pd.errors.ParserError) as exc:
        raise CatalogBuildError(f"Could not read catalog file {path}: {exc}") from exc

    missing = [col for col in ("title", "available_on") if col not in df.columns]
    if missing:
        raise CatalogBuildError(f"Catalog file {path} is missing columns: {', '.join(missing)}")

    for col in CATALOG_COLUMNS:
        if col not in df.columns:
            df[col] = None

    df["content_type"] = df["content_type"].fillna("movies")
    df["runtime"] = pd.to_numeric(df["runtime"], errors="coerce").fillna(0).astype(int)
    df["release_year"] = pd.to_numeric(df["release_year"], errors="coerce").fillna(0).astype(int)
    df["tmdb_rating"] = pd.to_numeric(df["tmdb_rating"], errors="coerce").fillna(0.0)
    df["genre_list"] = df["genres"].apply(split_list)
    df["provider_list"] = df["available_on"].apply(split_list)
    return df


def filter_catalog_frame(df: pd.DataFrame, filters: SessionFilters, services: list[str], is_tv: bool) -> pd.DataFrame:
    """Same narrowing TMDB discover applies, done locally on a prepared file."""
    selected = set(services)
    mask = df["content_type"] == ("tv" if is_tv else "movies")
    mask &= df["provider_list"].apply(lambda providers: bool(selected.intersection(providers)))

    genres = set(resolve_genres(filters.genres, filters.mood))
    if genres:
        mask &= df["genre_list"].apply(lambda item_genres: bool(genres.intersection(item_genres)))

    if filters.animation == "exclude":
        mask &= ~df["genre_list"].apply(lambda item_genres: "Animation" in item_genres)

    if filters.min_rating:
        mask &= df["tmdb_rating"] >= float(filters.min_rating)

    if not is_tv and filters.runtime_range in RUNTIME_RANGES:
        low, high = RUNTIME_RANGES[filters.runtime_range]
        if low is not None:
            mask &= df["runtime"] >= low
        if high is not None:
            mask &= df["runtime"] <= high

    if filters.release_year_range in RELEASE_YEAR_RANGES:
        first, last = RELEASE_YEAR_RANGES[filters.release_year_range]
        if first is not None:
            mask &= df["release_year"] >= first
        if last is not None:
            mask &= df["release_year"] <= last

    return df[mask]


class CsvCatalogBuilder:
    """Offline catalog source: a prepared CSV, already in preferred order."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._df: pd.DataFrame | None = None

    @property
    def frame(self) -> pd.DataFrame:
        if self._df is None:
            self._df = load_catalog_frame(self.path)
        return self._df

    def build(self, filters: SessionFilters, services: list[str]) -> list[CatalogItem]:
        both = filters.content_type == "both"
        per_type = CATALOG_SIZE // 2 if both else CATALOG_SIZE

        movies: list[CatalogItem] = []
        shows: list[CatalogItem] = []
        if filters.content_type in ("movies", "both"):
            movies = self._items(filter_catalog_frame(self.frame, filters, services, is_tv=False), services, per_type)
        if filters.content_type in ("tv", "both"):
            shows = self._items(filter_catalog_frame(self.frame, filters, services, is_tv=True), services, per_type)

        catalog = interleave(movies, shows) if both else (movies or shows)
        logger.info("CSV catalog %s produced %d titles", self.path.name, len(catalog))
        return renumber(catalog)

    @staticmethod
    def _items(df: pd.DataFrame, services: list[str], limit: int) -> list[CatalogItem]:
        selected = set(services)
        items: list[CatalogItem] = []
        for row in df.head(limit).itertuples(index=False):
            tmdb_id = getattr(row, "tmdb_id")
            items.append(
                CatalogItem(
                    id="",
                    session_id="",
                    title=str(row.title),
                    tmdb_id=int(tmdb_id) if pd.notna(tmdb_id) else None,
                    poster_url=row.poster_url if isinstance(row.poster_url, str) else "",
                    synopsis=row.synopsis if isinstance(row.synopsis, str) else "",
                    genres=list(row.genre_list),
                    runtime=int(row.runtime),
                    release_year=int(row.release_year),
                    tmdb_rating=round(float(row.tmdb_rating), 1),
                    available_on=[p for p in row.provider_list if p in selected],
                )
            )
        return items
