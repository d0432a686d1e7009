"""
Shared fixtures: an in-memory store, a controllable clock, sample catalogs,
a fully wired LifecycleService and a Flask test client.
"""

import random
from datetime import timedelta

import pytest

from flickpick import create_app
from flickpick.models import CatalogItem
from flickpick.services.catalog_builders import StaticCatalogBuilder
from flickpick.services.lifecycle_service import LifecycleService
from flickpick.store import get_store
from flickpick.store.memory_store import MemoryStore
from flickpick.utils.device import clear_device_cache
from flickpick.utils.serialization import utc_now


class FakeClock:
    """Starts at the real current time and moves 1ms per reading."""

    def __init__(self, tick: timedelta = timedelta(milliseconds=1)) -> None:
        self.now = utc_now()
        self.tick = tick

    def __call__(self):
        self.now += self.tick
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_items(count: int = 4, ratings: list[float] | None = None) -> list[CatalogItem]:
    ratings = ratings or [7.0] * count
    return [
        CatalogItem(
            id="",
            session_id="",
            title=f"Title {i}",
            tmdb_id=1000 + i,
            genres=["Comedy"],
            runtime=100,
            release_year=2015,
            tmdb_rating=ratings[i - 1],
            available_on=["netflix"],
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_items():
    return make_items(4, ratings=[7.5, 8.0, 6.5, 9.0])


@pytest.fixture
def lifecycle(store, clock, catalog_items):
    return LifecycleService(
        store,
        catalog_builder=StaticCatalogBuilder(catalog_items),
        min_participants=2,
        default_threshold=0.5,
        ttl_hours=24,
        rng=random.Random(1234),
        clock=clock,
    )


@pytest.fixture
def hosted(lifecycle):
    """A lobby with the host bound; returns (host_state, session_id)."""
    state = lifecycle.host_session("device-host", "Hana", ["netflix"])
    return state, state.session_id


@pytest.fixture
def active_session(lifecycle, hosted):
    """Active session with host + 3 guests: (states, catalog)."""
    host, session_id = hosted
    guests = [
        lifecycle.join_session(host.session_code, f"device-{i}", f"Guest {i}")
        for i in range(1, 4)
    ]
    lifecycle.start(host)
    catalog = lifecycle.catalog.fetch_catalog(session_id)
    return [host, *guests], catalog


@pytest.fixture
def app(tmp_path):
    app = create_app("testing")
    app.config["DEVICE_ID_PATH"] = str(tmp_path / "device_id")
    yield app
    clear_device_cache()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    return get_store(app)
