import threading
from unittest.mock import MagicMock

import pytest
import requests

from flickpick.errors import CatalogBuildError
from flickpick.models import SessionFilters
from flickpick.services.tmdb_service import (
    TmdbCatalogBuilder,
    build_discover_params,
    extract_available_on,
    map_genre_names,
)


def response(payload, status=200):
    resp = MagicMock()
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return resp


def details(tmdb_id, providers=(8,), title=None, kind="movie"):
    data = {
        "id": tmdb_id,
        "overview": f"About {tmdb_id}",
        "poster_path": f"/p{tmdb_id}.jpg",
        "genres": [{"id": 35, "name": "Comedy"}, {"id": 878, "name": "Science Fiction"}],
        "vote_average": 7.4,
        "watch/providers": {
            "results": {"US": {"flatrate": [{"provider_id": p} for p in providers]}}
        },
    }
    if kind == "tv":
        data.update({"name": title or f"Show {tmdb_id}", "episode_run_time": [40, 50], "first_air_date": "2019-04-01"})
    else:
        data.update({"title": title or f"Movie {tmdb_id}", "runtime": 101, "release_date": "2012-06-01"})
    return data


class FakeTmdb:
    """Routes requests.Session.get calls by path."""

    def __init__(self, discover: dict[str, list[int]], detail_overrides=None):
        self.discover = discover
        self.detail_overrides = detail_overrides or {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {})))
        path = url.split("/3", 1)[1]
        if path.startswith("/discover/"):
            kind = path.rsplit("/", 1)[1]
            ids = self.discover.get(kind, []) if params.get("page") == "1" else []
            if "with_genres" in params and self.discover.get("require_no_genres"):
                ids = []
            return response({"results": [{"id": i} for i in ids]})
        kind, tmdb_id = path.strip("/").split("/")
        tmdb_id = int(tmdb_id)
        if tmdb_id in self.detail_overrides:
            return response(self.detail_overrides[tmdb_id])
        return response(details(tmdb_id, kind=kind))


# ---------- pure helpers ----------

def test_discover_params_for_movies():
    filters = SessionFilters(
        genres=["Comedy", "Sci-Fi"],
        runtime_range="medium",
        release_year_range="2010s",
        min_rating=7,
        certifications=["PG", "PG-13"],
        animation="exclude",
    )
    params = build_discover_params(filters, ["netflix", "hulu", "unknown"], is_tv=False)

    assert params["with_watch_providers"] == "8|15"
    assert params["with_genres"] == "35|878"
    assert params["without_genres"] == "16"
    assert params["vote_average.gte"] == "7"
    assert params["with_runtime.gte"] == "90"
    assert params["with_runtime.lte"] == "120"
    assert params["primary_release_date.gte"] == "2010-01-01"
    assert params["primary_release_date.lte"] == "2019-12-31"
    assert params["certification"] == "PG|PG-13"
    assert params["sort_by"] == "popularity.desc"


def test_discover_params_for_tv_uses_mood_and_skips_movie_only_filters():
    filters = SessionFilters(mood="intense", runtime_range="short", release_year_range="recent", certifications=["R"])
    params = build_discover_params(filters, ["max"], is_tv=True)

    assert params["with_genres"] == "10759|53|80"
    assert params["first_air_date.gte"] == "2020-01-01"
    assert "with_runtime.lte" not in params
    assert "certification" not in params


def test_extract_available_on_keeps_selected_services_only():
    providers = {
        "US": {
            "flatrate": [{"provider_id": 8}, {"provider_id": 337}],
            "ads": [{"provider_id": 73}],
            "free": [{"provider_id": 8}],
        },
        "GB": {"flatrate": [{"provider_id": 15}]},
    }
    assert extract_available_on(providers, ["netflix", "tubi", "hulu"]) == ["netflix", "tubi"]
    assert extract_available_on(providers, ["hulu"], region="GB") == ["hulu"]
    assert extract_available_on(None, ["netflix"]) == []


def test_map_genre_names():
    assert map_genre_names([{"name": "Science Fiction"}, {"name": "Western"}, {"name": "Comedy"}]) == ["Sci-Fi", "Comedy"]


# ---------- builder ----------

def test_build_movies():
    fake = FakeTmdb({"movie": [11, 12, 13]}, detail_overrides={12: details(12, providers=(337,))})
    builder = TmdbCatalogBuilder(api_key="k", http=fake)

    items = builder.build(SessionFilters(), ["netflix"])

    assert [i.tmdb_id for i in items] == [11, 13]  # 12 is only on an unselected service
    assert [i.display_order for i in items] == [1, 2]
    first = items[0]
    assert first.title == "Movie 11"
    assert first.genres == ["Comedy", "Sci-Fi"]
    assert first.release_year == 2012
    assert first.tmdb_rating == 7.4
    assert first.poster_url.endswith("/p11.jpg")
    assert first.available_on == ["netflix"]
    assert all(call[1]["api_key"] == "k" for call in fake.calls)


def test_build_both_interleaves_movies_and_shows():
    fake = FakeTmdb({"movie": [1, 2, 3], "tv": [101]})
    builder = TmdbCatalogBuilder(api_key="k", http=fake)

    items = builder.build(SessionFilters(content_type="both"), ["netflix"])

    assert [i.tmdb_id for i in items] == [1, 101, 2, 3]
    show = items[1]
    assert show.title == "Show 101"
    assert show.runtime == 45
    assert show.release_year == 2019


def test_build_retries_without_explicit_genres():
    fake = FakeTmdb({"movie": [5], "require_no_genres": True})
    builder = TmdbCatalogBuilder(api_key="k", http=fake)

    items = builder.build(SessionFilters(genres=["Horror"]), ["netflix"])

    assert [i.tmdb_id for i in items] == [5]
    discover_calls = [params for url, params in fake.calls if "/discover/" in url]
    assert "with_genres" in discover_calls[0]
    assert "with_genres" not in discover_calls[-1]


def test_missing_api_key_is_a_build_error():
    builder = TmdbCatalogBuilder(api_key=None, http=MagicMock())
    with pytest.raises(CatalogBuildError):
        builder.build(SessionFilters(), ["netflix"])


def test_http_failure_is_a_build_error():
    http = MagicMock()
    http.get.return_value = response({}, status=500)
    builder = TmdbCatalogBuilder(api_key="k", http=http)

    with pytest.raises(CatalogBuildError) as excinfo:
        builder.build(SessionFilters(), ["netflix"])
    assert excinfo.value.retryable


def test_detail_fetches_do_not_share_a_session_across_threads(monkeypatch):
    created = []

    class ThreadCheckingSession(FakeTmdb):
        def __init__(self):
            super().__init__({"movie": list(range(1, 21))})
            self.threads = set()
            created.append(self)

        def get(self, url, params=None, timeout=None):
            self.threads.add(threading.get_ident())
            return super().get(url, params=params, timeout=timeout)

    monkeypatch.setattr("flickpick.services.tmdb_service.requests.Session", ThreadCheckingSession)
    items = TmdbCatalogBuilder(api_key="k").build(SessionFilters(), ["netflix"])

    assert len(items) == 20
    assert len(created) >= 2  # discover runs on the caller, details on the pool
    assert all(len(session.threads) == 1 for session in created)
