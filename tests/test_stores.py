"""Catalog store, participant registry, swipe ledger and the memory store underneath."""

import pytest

from conftest import make_items
from flickpick.errors import ConflictError, NotFoundError, TransientStoreError
from flickpick.services.catalog_service import CatalogService
from flickpick.services.participant_service import ParticipantService
from flickpick.services.swipe_service import SwipeService
from flickpick.store.base import EVENT_INSERT, EVENT_UPDATE, PARTICIPANTS, STATUS_DEGRADED, STATUS_SUBSCRIBED
from flickpick.utils.validation import ValidationError


# ---------- catalog ----------

def test_seed_assigns_display_order_from_one(store):
    catalog = CatalogService(store)
    seeded = catalog.seed_catalog("s1", make_items(3))

    assert [i.display_order for i in seeded] == [1, 2, 3]
    assert all(i.session_id == "s1" and i.id for i in seeded)


def test_seed_keeps_explicit_orders_and_fetch_sorts(store):
    items = make_items(3)
    items[0].display_order = 30
    items[1].display_order = 10
    items[2].display_order = 20

    catalog = CatalogService(store)
    catalog.seed_catalog("s1", items)

    assert [i.title for i in catalog.fetch_catalog("s1")] == ["Title 2", "Title 3", "Title 1"]


def test_second_seed_conflicts(store):
    catalog = CatalogService(store)
    catalog.seed_catalog("s1", make_items(2))
    with pytest.raises(ConflictError):
        catalog.seed_catalog("s1", make_items(2))


def test_seed_rejects_duplicate_orders(store):
    items = make_items(2)
    items[1].display_order = 1
    with pytest.raises(ValidationError):
        CatalogService(store).seed_catalog("s1", items)


def test_empty_catalog_is_allowed(store):
    catalog = CatalogService(store)
    assert catalog.seed_catalog("s1", []) == []
    assert catalog.fetch_catalog("s1") == []


def test_get_item_scoped_to_session(store):
    catalog = CatalogService(store)
    first = catalog.seed_catalog("s1", make_items(1))[0]

    assert catalog.get_item(first.id).title == "Title 1"
    with pytest.raises(NotFoundError):
        catalog.get_item(first.id, session_id="s2")


# ---------- participants ----------

def test_add_participant_defaults(store, clock):
    registry = ParticipantService(store, clock=clock)
    host = registry.add_participant("s1", "dev-1", None, is_host=True)
    guest = registry.add_participant("s1", "dev-2", "   ", avatar_seed=42)

    assert host.nickname == "Host"
    assert 1 <= host.avatar_seed <= 1_000_000
    assert guest.nickname == "Guest"
    assert guest.avatar_seed == 42
    assert guest.swipe_progress == 0


def test_same_device_can_join_twice_and_order_is_join_order(store, clock):
    registry = ParticipantService(store, clock=clock)
    a = registry.add_participant("s1", "dev-1", "Ann")
    b = registry.add_participant("s1", "dev-1", "Ann again")
    registry.add_participant("s2", "dev-9", "Other")

    assert [p.id for p in registry.list_participants("s1")] == [a.id, b.id]
    assert registry.count_participants("s1") == 2
    assert len(registry.list_by_device("dev-1")) == 2


def test_advance_progress_is_a_plain_set(store, clock):
    registry = ParticipantService(store, clock=clock)
    p = registry.add_participant("s1", "dev-1", "Ann")

    assert registry.advance_progress(p.id, 5).swipe_progress == 5
    assert registry.advance_progress(p.id, 2).swipe_progress == 2
    with pytest.raises(ValidationError):
        registry.advance_progress(p.id, -1)
    with pytest.raises(NotFoundError):
        registry.advance_progress("nobody", 1)


def test_registry_writes_reach_subscribers(store, clock):
    events, statuses = [], []
    store.subscribe(PARTICIPANTS, {"session_id": "s1"}, events.append, lambda s, e: statuses.append(s))

    registry = ParticipantService(store, clock=clock)
    p = registry.add_participant("s1", "dev-1", "Ann")
    registry.add_participant("s2", "dev-2", "Elsewhere")
    registry.advance_progress(p.id, 1)

    assert statuses == [STATUS_SUBSCRIBED]
    assert [(e.kind, e.row["id"]) for e in events] == [(EVENT_INSERT, p.id), (EVENT_UPDATE, p.id)]


# ---------- swipes ----------

def test_record_swipe_appends_without_dedup(store, clock):
    ledger = SwipeService(store, clock=clock)
    ledger.record_swipe("p1", "i1", "s1", "left", 500)
    ledger.record_swipe("p1", "i1", "s1", "right", 700)

    swipes = ledger.list_swipes("s1")
    assert [s.direction for s in swipes] == ["left", "right"]
    assert swipes[0].swiped_at < swipes[1].swiped_at


@pytest.mark.parametrize("direction, ms", [("up", 0), ("right", -5), ("left", "soon")])
def test_record_swipe_validation(store, direction, ms):
    with pytest.raises(ValidationError):
        SwipeService(store).record_swipe("p1", "i1", "s1", direction, ms)


# ---------- memory store connectivity ----------

def test_disconnected_store_raises_transient_and_signals_degraded(store):
    statuses = []
    store.subscribe(PARTICIPANTS, None, lambda e: None, lambda s, e: statuses.append(s))

    store.disconnect()
    with pytest.raises(TransientStoreError) as excinfo:
        store.insert(PARTICIPANTS, {"session_id": "s1"})
    assert excinfo.value.retryable

    store.reconnect()
    store.insert(PARTICIPANTS, {"session_id": "s1"})
    assert statuses == [STATUS_SUBSCRIBED, STATUS_DEGRADED, STATUS_SUBSCRIBED]


def test_unsubscribe_stops_delivery(store):
    events = []
    sub = store.subscribe(PARTICIPANTS, None, events.append)
    sub.unsubscribe()
    store.insert(PARTICIPANTS, {"session_id": "s1"})

    assert not sub.active
    assert events == []
