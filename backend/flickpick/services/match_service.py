"""
Match aggregation.

A "match" is a catalog title whose share of yes votes meets the session's
threshold. Votes are resolved per (participant, title): only the latest
direction counts, which makes retried or concurrent duplicate swipes safe
without locks. The denominator is the roster size at read time, so a title's
percentage drops when someone joins even if nobody swiped.
"""

from __future__ import annotations

from typing import Iterable

from flickpick.models import CatalogItem, Match, Participant, Swipe
from flickpick.models.match import TIER_NONE
from flickpick.services.catalog_service import CatalogService
from flickpick.services.participant_service import ParticipantService
from flickpick.services.session_service import SessionService
from flickpick.services.swipe_service import SwipeService
from flickpick.store import DataStore, get_store
from flickpick.utils.scoring import (
    classify_tier,
    match_percentage,
    match_sort_key,
    meets_threshold,
)


class MatchTally:
    """
    Incremental vote state for one session.

    Feed it the catalog and roster once, then apply swipes and joins as they
    arrive; snapshot() is cheap enough to call after every change.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogItem] = (),
        participants: Iterable[Participant] = (),
    ) -> None:
        self._items: dict[str, CatalogItem] = {}
        self._participant_ids: set[str] = set()
        self._votes: dict[tuple[str, str], Swipe] = {}
        self.set_catalog(catalog)
        self.set_participants(participants)

    # ---------- inputs ----------

    def set_catalog(self, catalog: Iterable[CatalogItem]) -> None:
        self._items = {item.id: item for item in catalog}

    def set_participants(self, participants: Iterable[Participant]) -> None:
        self._participant_ids = {p.id for p in participants}

    def add_participant(self, participant: Participant) -> bool:
        if participant.id in self._participant_ids:
            return False
        self._participant_ids.add(participant.id)
        return True

    def apply_swipe(self, swipe: Swipe) -> bool:
        """
        Record a vote, keeping the participant's most recent direction.

        Returns False when an older swipe arrives after a newer one for the
        same participant and title (out-of-order delivery).
        """
        key = (swipe.participant_id, swipe.catalog_item_id)
        current = self._votes.get(key)
        if (
            current is not None
            and current.swiped_at is not None
            and swipe.swiped_at is not None
            and swipe.swiped_at < current.swiped_at
        ):
            return False
        self._votes[key] = swipe
        return True

    def apply_swipes(self, swipes: Iterable[Swipe]) -> None:
        for swipe in swipes:
            self.apply_swipe(swipe)

    @property
    def total_participants(self) -> int:
        return len(self._participant_ids)

    # ---------- outputs ----------

    def score(self, catalog_item_id: str, threshold: float) -> Match | None:
        """Standing of one title, whether or not it qualifies."""
        item = self._items.get(catalog_item_id)
        if item is None:
            return None
        right_votes = self._right_votes().get(catalog_item_id, [])
        return self._build_match(item, right_votes, threshold)

    def snapshot(self, threshold: float) -> list[Match]:
        """Qualifying titles, best first."""
        matches: list[Match] = []
        for item_id, right_votes in self._right_votes().items():
            match = self._build_match(self._items[item_id], right_votes, threshold)
            if match.tier == TIER_NONE:
                continue
            if not meets_threshold(match.match_percentage, threshold):
                continue
            matches.append(match)

        matches.sort(key=match_sort_key)
        return matches

    def _right_votes(self) -> dict[str, list[Swipe]]:
        votes: dict[str, list[Swipe]] = {}
        for (participant_id, item_id), swipe in self._votes.items():
            if participant_id not in self._participant_ids or item_id not in self._items:
                continue
            if swipe.is_right:
                votes.setdefault(item_id, []).append(swipe)
        return votes

    def _build_match(self, item: CatalogItem, right_votes: list[Swipe], threshold: float) -> Match:
        total = self.total_participants
        right = len(right_votes)
        avg_time = (
            sum(vote.time_on_card_ms for vote in right_votes) / right if right else 0.0
        )
        return Match.for_item(
            item,
            right_swipe_count=right,
            total_participants=total,
            match_percentage=match_percentage(right, total),
            tier=classify_tier(right, total, threshold),
            avg_time_on_card_ms=avg_time,
        )


def aggregate_matches(
    catalog: Iterable[CatalogItem],
    participants: Iterable[Participant],
    swipes: Iterable[Swipe],
    threshold: float,
) -> list[Match]:
    """One-shot form of MatchTally: swipes must be in ledger order."""
    tally = MatchTally(catalog, participants)
    tally.apply_swipes(swipes)
    return tally.snapshot(threshold)


class MatchService:
    def __init__(self, store: DataStore | None = None) -> None:
        self.store = store or get_store()
        self.session_service = SessionService(self.store)
        self.catalog_service = CatalogService(self.store)
        self.participant_service = ParticipantService(self.store)
        self.swipe_service = SwipeService(self.store)

    def build_tally(self, session_id: str) -> tuple[MatchTally, float]:
        """Load a session's full state into a fresh tally; returns (tally, threshold)."""
        session = self.session_service.get_session(session_id)
        tally = MatchTally(
            self.catalog_service.fetch_catalog(session_id),
            self.participant_service.list_participants(session_id),
        )
        tally.apply_swipes(self.swipe_service.list_swipes(session_id))
        return tally, session.match_threshold

    def get_matches(self, session_id: str) -> list[Match]:
        """Live standings; valid mid-session, no need to wait for everyone."""
        tally, threshold = self.build_tally(session_id)
        return tally.snapshot(threshold)
