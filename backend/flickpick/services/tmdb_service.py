from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any

import requests

from flickpick.config import config_value
from flickpick.constants import CATALOG_SIZE, PROVIDER_IDS, PROVIDERS_BY_TMDB_ID, resolve_genres
from flickpick.errors import CatalogBuildError
from flickpick.models import CatalogItem, SessionFilters
from flickpick.services.catalog_builders import interleave, renumber

logger = logging.getLogger(__name__)

TMDB_BASE = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w500"

MOVIE_GENRE_IDS: dict[str, int] = {
    "Action": 28,
    "Comedy": 35,
    "Drama": 18,
    "Horror": 27,
    "Thriller": 53,
    "Sci-Fi": 878,
    "Romance": 10749,
    "Documentary": 99,
    "Animation": 16,
    "Fantasy": 14,
    "Mystery": 9648,
    "Crime": 80,
}

# TV uses combined genres for a couple of these
TV_GENRE_IDS: dict[str, int] = {**MOVIE_GENRE_IDS, "Action": 10759, "Sci-Fi": 10765}

# TMDB names -> app names
TMDB_GENRE_NAMES: dict[str, str] = {
    "Science Fiction": "Sci-Fi",
    "Action & Adventure": "Action",
    "Sci-Fi & Fantasy": "Sci-Fi",
    "War & Politics": "Drama",
}

ANIMATION_GENRE_ID = 16
DETAIL_WORKERS = 8


def build_discover_params(
    filters: SessionFilters,
    services: list[str],
    is_tv: bool,
    region: str = "US",
) -> dict[str, str]:
    """Translate session filters into /discover query params."""
    params: dict[str, str] = {
        "sort_by": "popularity.desc",
        "vote_count.gte": "200",
        "with_original_language": "en",
        "watch_region": region,
        "with_watch_monetization_types": "flatrate|free|ads",
    }

    provider_ids = [str(PROVIDER_IDS[s]) for s in services if s in PROVIDER_IDS]
    if provider_ids:
        params["with_watch_providers"] = "|".join(provider_ids)

    # OR-join so several picks broaden the pool
    genre_map = TV_GENRE_IDS if is_tv else MOVIE_GENRE_IDS
    genre_ids = [str(genre_map[g]) for g in resolve_genres(filters.genres, filters.mood) if g in genre_map]
    if genre_ids:
        params["with_genres"] = "|".join(genre_ids)

    if filters.animation == "exclude":
        params["without_genres"] = str(ANIMATION_GENRE_ID)

    if filters.min_rating and filters.min_rating > 0:
        params["vote_average.gte"] = str(filters.min_rating)

    if not is_tv and filters.runtime_range and filters.runtime_range != "any":
        if filters.runtime_range == "short":
            params["with_runtime.lte"] = "90"
        elif filters.runtime_range == "medium":
            params["with_runtime.gte"] = "90"
            params["with_runtime.lte"] = "120"
        elif filters.runtime_range == "long":
            params["with_runtime.gte"] = "120"

    if filters.release_year_range and filters.release_year_range != "any":
        date_gte = "first_air_date.gte" if is_tv else "primary_release_date.gte"
        date_lte = "first_air_date.lte" if is_tv else "primary_release_date.lte"
        if filters.release_year_range == "classic":
            params[date_lte] = "1999-12-31"
        elif filters.release_year_range == "2000s":
            params[date_gte] = "2000-01-01"
            params[date_lte] = "2009-12-31"
        elif filters.release_year_range == "2010s":
            params[date_gte] = "2010-01-01"
            params[date_lte] = "2019-12-31"
        elif filters.release_year_range == "recent":
            params[date_gte] = "2020-01-01"

    if not is_tv and filters.certifications:
        params["certification_country"] = region
        params["certification"] = "|".join(filters.certifications)

    return params


def extract_available_on(providers: dict[str, Any] | None, services: list[str], region: str = "US") -> list[str]:
    """Selected services that actually stream the title in the region."""
    regional = (providers or {}).get(region)
    if not regional:
        return []

    offers = (regional.get("flatrate") or []) + (regional.get("ads") or []) + (regional.get("free") or [])
    selected = set(services)
    available: list[str] = []
    for offer in offers:
        app_id = PROVIDERS_BY_TMDB_ID.get(offer.get("provider_id"))
        if app_id and app_id in selected and app_id not in available:
            available.append(app_id)
    return available


def map_genre_names(tmdb_genres: list[dict[str, Any]]) -> list[str]:
    names = [TMDB_GENRE_NAMES.get(g.get("name"), g.get("name")) for g in tmdb_genres]
    return [name for name in names if name in MOVIE_GENRE_IDS]


class TmdbCatalogBuilder:
    """
    Builds a session catalog from TMDB's discover + details endpoints.

    The discover ranking (popularity.desc) is taken as-is. Titles not
    streamable on any selected service are dropped.
    """

    def __init__(
        self,
        api_key: str | None = None,
        region: str | None = None,
        http: requests.Session | None = None,
        timeout: int = 10,
    ) -> None:
        self.api_key = api_key or config_value("TMDB_API_KEY", None)
        self.region = region or config_value("TMDB_REGION", "US")
        self._http = http
        self._local = threading.local()
        self.timeout = timeout

    def build(self, filters: SessionFilters, services: list[str]) -> list[CatalogItem]:
        catalog = self._build_once(filters, services)

        if not catalog and filters.genres:
            # Drop explicit genre picks; a mood still narrows the pool
            logger.info("No TMDB results for genres %s; retrying without them", filters.genres)
            catalog = self._build_once(replace(filters, genres=[]), services)

        return renumber(catalog)

    # ---------- helpers ----------

    def _build_once(self, filters: SessionFilters, services: list[str]) -> list[CatalogItem]:
        include_movies = filters.content_type in ("movies", "both")
        include_tv = filters.content_type in ("tv", "both")
        per_type = CATALOG_SIZE // 2 if filters.content_type == "both" else CATALOG_SIZE

        movies = self._discover("movie", filters, services, per_type) if include_movies else []
        shows = self._discover("tv", filters, services, per_type) if include_tv else []

        if filters.content_type == "both":
            return interleave(movies, shows)
        return movies if include_movies else shows

    def _discover(self, kind: str, filters: SessionFilters, services: list[str], limit: int) -> list[CatalogItem]:
        params = build_discover_params(filters, services, is_tv=kind == "tv", region=self.region)
        results: list[dict[str, Any]] = []
        for page in ("1", "2"):
            payload = self._get(f"/discover/{kind}", {**params, "page": page})
            results.extend(payload.get("results") or [])

        tmdb_ids = [r["id"] for r in results[:limit] if r.get("id") is not None]
        if not tmdb_ids:
            return []

        with ThreadPoolExecutor(max_workers=DETAIL_WORKERS) as pool:
            items = list(pool.map(lambda tmdb_id: self._details(kind, tmdb_id, services), tmdb_ids))
        return [item for item in items if item is not None]

    def _details(self, kind: str, tmdb_id: int, services: list[str]) -> CatalogItem | None:
        data = self._get(f"/{kind}/{tmdb_id}", {"append_to_response": "watch/providers"})

        available_on = extract_available_on(
            (data.get("watch/providers") or {}).get("results"), services, self.region
        )
        if not available_on:
            return None

        if kind == "tv":
            title = data.get("name") or ""
            runtimes = data.get("episode_run_time") or []
            runtime = round(sum(runtimes) / len(runtimes)) if runtimes else 0
            release_date = data.get("first_air_date") or ""
        else:
            title = data.get("title") or ""
            runtime = data.get("runtime") or 0
            release_date = data.get("release_date") or ""

        poster_path = data.get("poster_path")
        return CatalogItem(
            id="",
            session_id="",
            title=title,
            tmdb_id=data.get("id"),
            poster_url=f"{TMDB_IMAGE_BASE}{poster_path}" if poster_path else "",
            synopsis=data.get("overview") or "",
            genres=map_genre_names(data.get("genres") or []),
            runtime=int(runtime),
            release_year=int(release_date[:4]) if release_date[:4].isdigit() else 0,
            tmdb_rating=round(float(data.get("vote_average") or 0.0), 1),
            available_on=available_on,
        )

    def _session(self) -> requests.Session:
        """Injected client, else one Session per thread (detail fetches run in a pool)."""
        if self._http is not None:
            return self._http
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        if not self.api_key:
            raise CatalogBuildError("TMDB API key not configured. Set TMDB_API_KEY.")
        try:
            resp = self._session().get(
                f"{TMDB_BASE}{path}",
                params={"api_key": self.api_key, **params},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise CatalogBuildError(f"TMDB request failed for {path}: {exc}") from exc
        return resp.json()
