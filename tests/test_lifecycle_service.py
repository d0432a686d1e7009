import random
from unittest.mock import patch

import pytest

from flickpick.errors import (
    ConflictError,
    ExhaustedError,
    LifecycleError,
    NotFoundError,
    PermissionDeniedError,
    TransientStoreError,
)
from flickpick.models.session import STATUS_ACTIVE, STATUS_COMPLETED, STATUS_EXPIRED, STATUS_LOBBY
from flickpick.services.catalog_builders import StaticCatalogBuilder
from flickpick.services.lifecycle_service import CODE_ALPHABET, CODE_LENGTH, LifecycleService
from flickpick.services.match_service import MatchService


# ---------- codes ----------

def test_code_alphabet_has_no_ambiguous_symbols():
    assert len(CODE_ALPHABET) == 32
    assert not set("IO01") & set(CODE_ALPHABET)


def test_code_generation_retries_after_two_collisions(lifecycle):
    with patch.object(lifecycle.sessions, "code_in_use", side_effect=[True, True, False]) as in_use:
        code = lifecycle.generate_unique_code()

    assert in_use.call_count == 3
    assert len(code) == CODE_LENGTH
    assert set(code) <= set(CODE_ALPHABET)


def test_code_generation_gives_up_after_three_attempts(lifecycle):
    with patch.object(lifecycle.sessions, "code_in_use", return_value=True):
        with pytest.raises(ExhaustedError) as excinfo:
            lifecycle.generate_unique_code()
    assert excinfo.value.retryable


def test_seeded_rng_collides_against_real_lobbies(store, clock):
    # Two services drawing the same sequence: the second must skip the taken code
    first = LifecycleService(store, rng=random.Random(99), clock=clock, ttl_hours=24)
    second = LifecycleService(store, rng=random.Random(99), clock=clock, ttl_hours=24)

    a = first.host_session("dev-1", "A", ["netflix"])
    b = second.host_session("dev-2", "B", ["netflix"])
    assert a.session_code != b.session_code


# ---------- host / join / resume ----------

def test_host_session_seeds_catalog_and_binds_host(lifecycle, hosted):
    state, session_id = hosted

    assert state.is_bound
    assert state.is_host
    assert state.nickname == "Hana"
    assert state.catalog_size == 4
    assert state.current_card_index == 0
    assert lifecycle.status_of(session_id) == STATUS_LOBBY
    assert [i.display_order for i in lifecycle.catalog.fetch_catalog(session_id)] == [1, 2, 3, 4]


def test_host_session_with_empty_catalog(store, clock):
    service = LifecycleService(store, catalog_builder=StaticCatalogBuilder([]), clock=clock, ttl_hours=24)
    state = service.host_session("dev-1", None, ["netflix"])

    assert state.catalog_size == 0
    assert state.nickname == "Host"


def test_join_by_code_is_case_insensitive(lifecycle, hosted):
    host, session_id = hosted
    guest = lifecycle.join_session(host.session_code.lower(), "dev-2", "Gus")

    assert guest.session_id == session_id
    assert not guest.is_host
    assert guest.catalog_size == 4
    assert lifecycle.participants.count_participants(session_id) == 2


def test_join_unknown_or_expired_code_is_not_found(lifecycle, hosted, clock):
    host, _ = hosted
    with pytest.raises(NotFoundError):
        lifecycle.join_session("ZZZZZZ", "dev-2", "Gus")

    clock.advance(hours=25)
    with pytest.raises(NotFoundError):
        lifecycle.join_session(host.session_code, "dev-2", "Gus")


def test_join_after_start_is_not_found(lifecycle, active_session):
    states, _ = active_session
    with pytest.raises(NotFoundError):
        lifecycle.join_session(states[0].session_code, "dev-late", "Late")


def test_resume_rebinds_progress(lifecycle, active_session):
    states, catalog = active_session
    guest = states[1]
    lifecycle.swipe(guest, catalog[0].id, "right")

    resumed = lifecycle.resume(guest.session_id, guest.participant_id)
    assert resumed.current_card_index == 1
    assert not resumed.is_host


def test_resume_rejects_participant_from_other_session(lifecycle, hosted, store, clock):
    _, session_id = hosted
    other = LifecycleService(store, clock=clock, ttl_hours=24).host_session("dev-9", "X", ["hulu"])

    with pytest.raises(NotFoundError):
        lifecycle.resume(session_id, other.participant_id)


# ---------- start ----------

def test_start_requires_host(lifecycle, hosted):
    host, _ = hosted
    guest = lifecycle.join_session(host.session_code, "dev-2", "Gus")

    with pytest.raises(PermissionDeniedError):
        lifecycle.start(guest)


def test_start_requires_minimum_participants(lifecycle, hosted):
    host, session_id = hosted
    with pytest.raises(LifecycleError):
        lifecycle.start(host)

    lifecycle.join_session(host.session_code, "dev-2", "Gus")
    assert lifecycle.start(host).status == STATUS_ACTIVE


def test_start_twice_is_invalid(lifecycle, active_session):
    states, _ = active_session
    with pytest.raises(LifecycleError):
        lifecycle.start(states[0])


def test_start_after_expiry_is_invalid(lifecycle, hosted, clock):
    host, session_id = hosted
    lifecycle.join_session(host.session_code, "dev-2", "Gus")
    clock.advance(hours=24)

    with pytest.raises(LifecycleError):
        lifecycle.start(host)
    assert lifecycle.status_of(session_id) == STATUS_EXPIRED


# ---------- swiping ----------

def test_swipe_in_lobby_is_rejected(lifecycle, hosted):
    host, session_id = hosted
    first = lifecycle.catalog.fetch_catalog(session_id)[0]

    with pytest.raises(LifecycleError):
        lifecycle.swipe(host, first.id, "right")


def test_swipe_records_and_advances(lifecycle, active_session):
    states, catalog = active_session
    guest = states[2]

    outcome = lifecycle.swipe(guest, catalog[0].id, "right", 850)
    assert outcome.ok
    assert outcome.swipe.direction == "right"
    assert outcome.progress == 1
    assert guest.current_card_index == 1

    lifecycle.swipe(guest, catalog[1].id, "left")
    assert lifecycle.participants.get_participant(guest.participant_id).swipe_progress == 2


def test_progress_stops_at_catalog_size(lifecycle, active_session):
    states, catalog = active_session
    guest = states[1]
    for entry in catalog:
        lifecycle.swipe(guest, entry.id, "left")
    lifecycle.swipe(guest, catalog[-1].id, "right")

    assert guest.current_card_index == len(catalog)
    assert guest.finished_swiping


def test_retried_swipe_does_not_skip_the_next_card(lifecycle, active_session):
    states, catalog = active_session
    guest = states[1]

    lifecycle.swipe(guest, catalog[0].id, "right")
    retry = lifecycle.swipe(guest, catalog[0].id, "right")

    assert retry.progress == 1
    assert lifecycle.participants.get_participant(guest.participant_id).swipe_progress == 1
    resumed = lifecycle.resume(guest.session_id, guest.participant_id)
    assert catalog[resumed.current_card_index].display_order == 2


def test_swipe_on_foreign_item_is_not_found(lifecycle, active_session):
    states, _ = active_session
    with pytest.raises(NotFoundError):
        lifecycle.swipe(states[0], "not-in-catalog", "right")


def test_failed_swipe_write_is_reported_not_swallowed(lifecycle, active_session, caplog):
    states, catalog = active_session
    guest = states[1]

    with patch.object(
        lifecycle.swipes, "record_swipe", side_effect=TransientStoreError("store is unreachable")
    ):
        outcome = lifecycle.swipe(guest, catalog[0].id, "right")

    assert not outcome.ok
    assert outcome.swipe is None
    assert isinstance(outcome.errors[0], TransientStoreError)
    assert outcome.progress == 1
    assert "not recorded" in caplog.text


def test_failed_progress_write_keeps_recorded_swipe(lifecycle, active_session):
    states, catalog = active_session
    guest = states[1]

    with patch.object(
        lifecycle.participants, "advance_progress", side_effect=TransientStoreError("timeout")
    ):
        outcome = lifecycle.swipe(guest, catalog[0].id, "right")

    assert outcome.swipe is not None
    assert outcome.progress is None
    assert len(outcome.errors) == 1
    assert outcome.to_response()["recorded"] is True


def test_fifth_participant_is_counted_on_next_read(lifecycle, hosted, store):
    host, session_id = hosted
    guests = [lifecycle.join_session(host.session_code, f"dev-{i}", None) for i in range(3)]
    lifecycle.start(host)
    target = lifecycle.catalog.fetch_catalog(session_id)[0]

    for i, state in enumerate([host, *guests]):
        lifecycle.swipe(state, target.id, "right" if i < 2 else "left")

    matches = MatchService(store)
    assert matches.get_matches(session_id)[0].match_percentage == 2 / 4

    lifecycle.participants.add_participant(session_id, "dev-late", "Late")
    tally, _ = matches.build_tally(session_id)
    standing = tally.score(target.id, 0.4)
    assert standing.match_percentage == 2 / 5
    assert standing.total_participants == 5


# ---------- finalize ----------

def test_finalize_without_winner_or_matches(lifecycle, active_session):
    states, _ = active_session
    host = states[0]
    session_id = host.session_id

    session = lifecycle.finalize(host)

    assert session.status == STATUS_COMPLETED
    assert session.selected_match_id is None
    assert not host.is_bound
    assert lifecycle.status_of(session_id) == STATUS_COMPLETED


def test_finalize_with_winner(lifecycle, active_session):
    states, catalog = active_session
    host = states[0]

    session = lifecycle.finalize(host, catalog[2].id)
    assert session.selected_match_id == catalog[2].id
    assert session.status == STATUS_COMPLETED


def test_finalize_rejects_winner_outside_catalog(lifecycle, active_session):
    states, _ = active_session
    host = states[0]

    with pytest.raises(NotFoundError):
        lifecycle.finalize(host, "bogus")
    assert lifecycle.status_of(host.session_id) == STATUS_ACTIVE
    assert host.is_bound


def test_finalize_by_guest_is_denied(lifecycle, active_session):
    states, _ = active_session
    with pytest.raises(PermissionDeniedError):
        lifecycle.finalize(states[1])


def test_completed_is_terminal(lifecycle, active_session):
    states, catalog = active_session
    host, guest = states[0], states[1]
    session_id = host.session_id
    lifecycle.finalize(host)

    rebound = lifecycle.resume(session_id, guest.participant_id)
    with pytest.raises(LifecycleError):
        lifecycle.swipe(rebound, catalog[0].id, "right")

    host_again = lifecycle.resume(session_id, lifecycle.participants.list_participants(session_id)[0].id)
    with pytest.raises(LifecycleError):
        lifecycle.finalize(host_again)
    with pytest.raises(LifecycleError):
        lifecycle.start(host_again)


def test_finalize_from_lobby_is_invalid(lifecycle, hosted):
    host, _ = hosted
    with pytest.raises(LifecycleError):
        lifecycle.finalize(host)


def test_unbound_state_is_rejected(lifecycle, active_session):
    states, catalog = active_session
    host = states[0]
    lifecycle.finalize(host)

    with pytest.raises(LifecycleError):
        lifecycle.swipe(host, catalog[0].id, "right")


def test_duplicate_seed_through_host_flow_conflicts(lifecycle, hosted, catalog_items):
    _, session_id = hosted
    with pytest.raises(ConflictError):
        lifecycle.catalog.seed_catalog(session_id, catalog_items)
