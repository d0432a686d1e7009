"""
Live views over a session.

Each watcher subscribes to the tables it depends on, keeps a derived view
(match standings, roster, session status) and pushes it to a callback after
every relevant write. Match recomputation is debounced so a burst of swipes
from several people results in a single push.

Status handling: while any underlying subscription is degraded the watcher
reports "degraded" once through `on_status`. When every subscription is back
it reloads from the store (events may have been missed in between), pushes
the fresh view and reports "subscribed".
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping

from flickpick.config import config_value
from flickpick.models import Match, Participant, Session, Swipe
from flickpick.services.match_service import MatchService, MatchTally
from flickpick.services.participant_service import ParticipantService
from flickpick.services.session_service import SessionService
from flickpick.store import DataStore, get_store
from flickpick.store.base import (
    EVENT_INSERT,
    PARTICIPANTS,
    SESSIONS,
    STATUS_DEGRADED,
    STATUS_SUBSCRIBED,
    SWIPES,
    ChangeEvent,
    StatusCallback,
    Subscription,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500


class _Watcher:
    """Subscription bookkeeping shared by the concrete watchers."""

    def __init__(self, store: DataStore, session_id: str, on_status: StatusCallback | None) -> None:
        self.store = store
        self.session_id = session_id
        self.on_status = on_status
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._table_status: dict[str, str] = {}
        self._degraded = False
        self._stopped = False

    # Subclasses: which (table, filters) to watch, how to rebuild, how to apply an event
    def _sources(self) -> list[tuple[str, Mapping[str, Any]]]:
        raise NotImplementedError

    def _reload(self) -> None:
        raise NotImplementedError

    def _apply(self, event: ChangeEvent) -> bool:
        raise NotImplementedError

    def _push(self) -> None:
        raise NotImplementedError

    # ---------- lifecycle ----------

    def start(self) -> "_Watcher":
        with self._lock:
            for table, filters in self._sources():
                self._table_status[table] = ""
                self._subscriptions.append(
                    self.store.subscribe(
                        table,
                        filters,
                        self._on_change,
                        lambda status, error, table=table: self._on_table_status(table, status, error),
                    )
                )
            try:
                self.refresh()
            except Exception:
                self.stop()
                raise
        return self

    def refresh(self) -> None:
        """Reload from the store and push; also the manual retry."""
        with self._lock:
            if self._stopped:
                return
            self._reload()
            self._push()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.unsubscribe()

    @property
    def degraded(self) -> bool:
        return self._degraded

    # ---------- store callbacks ----------

    def _on_change(self, event: ChangeEvent) -> None:
        with self._lock:
            if self._stopped:
                return
            if self._apply(event):
                self._changed()

    def _changed(self) -> None:
        self._push()

    def _on_table_status(self, table: str, status: str, error: Exception | None) -> None:
        with self._lock:
            if self._stopped:
                return
            self._table_status[table] = status

            if status == STATUS_DEGRADED:
                if not self._degraded:
                    self._degraded = True
                    logger.warning("Session %s %s feed degraded: %s", self.session_id, table, error)
                    self._emit_status(STATUS_DEGRADED, error)
                return

            if self._degraded and all(s == STATUS_SUBSCRIBED for s in self._table_status.values()):
                self._degraded = False
                logger.info("Session %s feeds recovered; reloading", self.session_id)
                try:
                    self.refresh()
                except Exception as exc:
                    logger.warning("Reload after reconnect failed for %s: %s", self.session_id, exc)
                    self._degraded = True
                    self._emit_status(STATUS_DEGRADED, exc)
                    return
                self._emit_status(STATUS_SUBSCRIBED, None)

    def _emit_status(self, status: str, error: Exception | None) -> None:
        if self.on_status is None:
            return
        try:
            self.on_status(status, error)
        except Exception:
            logger.exception("Watcher status callback failed (%s)", status)


class MatchWatcher(_Watcher):
    def __init__(
        self,
        store: DataStore,
        session_id: str,
        on_matches: Callable[[list[Match]], None],
        on_status: StatusCallback | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        super().__init__(store, session_id, on_status)
        self.on_matches = on_matches
        self.debounce_ms = debounce_ms
        self.match_service = MatchService(store)
        self._tally = MatchTally()
        self._threshold = 0.5
        self._timer: threading.Timer | None = None

    def _sources(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [
            (SWIPES, {"session_id": self.session_id}),
            (PARTICIPANTS, {"session_id": self.session_id}),
        ]

    def _reload(self) -> None:
        self._tally, self._threshold = self.match_service.build_tally(self.session_id)

    def _apply(self, event: ChangeEvent) -> bool:
        if event.table == SWIPES and event.kind == EVENT_INSERT:
            return self._tally.apply_swipe(Swipe.from_mapping(event.row))
        if event.table == PARTICIPANTS and event.kind == EVENT_INSERT:
            return self._tally.add_participant(Participant.from_mapping(event.row))
        # progress updates do not move standings
        return False

    def _changed(self) -> None:
        if self.debounce_ms <= 0:
            self._push()
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self.debounce_ms / 1000.0, self.flush)
        self._timer.daemon = True
        self._timer.start()

    def flush(self) -> None:
        """Push now if a recomputation is pending."""
        with self._lock:
            timer, self._timer = self._timer, None
            if timer is None or self._stopped:
                return
            timer.cancel()
            self._push()

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        super().stop()

    @property
    def matches(self) -> list[Match]:
        with self._lock:
            return self._tally.snapshot(self._threshold)

    def _push(self) -> None:
        matches = self._tally.snapshot(self._threshold)
        try:
            self.on_matches(matches)
        except Exception:
            logger.exception("Match callback failed for session %s", self.session_id)


class ParticipantWatcher(_Watcher):
    def __init__(
        self,
        store: DataStore,
        session_id: str,
        on_participants: Callable[[list[Participant]], None],
        on_status: StatusCallback | None = None,
    ) -> None:
        super().__init__(store, session_id, on_status)
        self.on_participants = on_participants
        self.participant_service = ParticipantService(store)
        self._roster: dict[str, Participant] = {}

    def _sources(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [(PARTICIPANTS, {"session_id": self.session_id})]

    def _reload(self) -> None:
        self._roster = {p.id: p for p in self.participant_service.list_participants(self.session_id)}

    def _apply(self, event: ChangeEvent) -> bool:
        participant = Participant.from_mapping(event.row)
        if event.kind == EVENT_INSERT and participant.id in self._roster:
            return False
        self._roster[participant.id] = participant
        return True

    @property
    def participants(self) -> list[Participant]:
        with self._lock:
            return self._ordered()

    def _ordered(self) -> list[Participant]:
        # dicts keep insertion order; reload inserts in join order
        return list(self._roster.values())

    def _push(self) -> None:
        try:
            self.on_participants(self._ordered())
        except Exception:
            logger.exception("Participant callback failed for session %s", self.session_id)


class SessionStatusWatcher(_Watcher):
    """Pushes the session's effective status whenever it changes."""

    def __init__(
        self,
        store: DataStore,
        session_id: str,
        on_status_change: Callable[[str], None],
        on_status: StatusCallback | None = None,
    ) -> None:
        super().__init__(store, session_id, on_status)
        self.on_status_change = on_status_change
        self.session_service = SessionService(store)
        self._status: str | None = None
        self._last_pushed: str | None = None

    def _sources(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [(SESSIONS, {"id": self.session_id})]

    def _reload(self) -> None:
        session = self.session_service.get_session(self.session_id)
        self._status = self.session_service.effective_status(session)

    def _apply(self, event: ChangeEvent) -> bool:
        session = Session.from_mapping(event.row)
        self._status = self.session_service.effective_status(session)
        return self._status != self._last_pushed

    @property
    def status(self) -> str | None:
        return self._status

    def _push(self) -> None:
        if self._status is None or self._status == self._last_pushed:
            return
        self._last_pushed = self._status
        try:
            self.on_status_change(self._status)
        except Exception:
            logger.exception("Status callback failed for session %s", self.session_id)


class RealtimeService:
    def __init__(self, store: DataStore | None = None, debounce_ms: int | None = None) -> None:
        self.store = store or get_store()
        self.debounce_ms = (
            debounce_ms
            if debounce_ms is not None
            else config_value("MATCH_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS)
        )

    def watch_matches(
        self,
        session_id: str,
        on_matches: Callable[[list[Match]], None],
        on_status: StatusCallback | None = None,
    ) -> MatchWatcher:
        watcher = MatchWatcher(self.store, session_id, on_matches, on_status, self.debounce_ms)
        watcher.start()
        return watcher

    def watch_participants(
        self,
        session_id: str,
        on_participants: Callable[[list[Participant]], None],
        on_status: StatusCallback | None = None,
    ) -> ParticipantWatcher:
        watcher = ParticipantWatcher(self.store, session_id, on_participants, on_status)
        watcher.start()
        return watcher

    def watch_session_status(
        self,
        session_id: str,
        on_status_change: Callable[[str], None],
        on_status: StatusCallback | None = None,
    ) -> SessionStatusWatcher:
        watcher = SessionStatusWatcher(self.store, session_id, on_status_change, on_status)
        watcher.start()
        return watcher
