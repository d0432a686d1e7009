"""
Firestore-backed DataStore.

Each table is a top-level collection (sessions, participants, catalog_items,
swipes); child rows carry a session_id field so a session's rows can be
queried and watched with a single equality filter.

Realtime delivery uses Firestore snapshot listeners. The first snapshot of a
listener is the current state, not a change, so it is reported as the
"subscribed" status instead of a burst of inserts. A background monitor
notices listeners whose stream has died, reports "degraded" and re-attaches.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import uuid
from typing import Any, Iterator, Mapping

from google.api_core import exceptions as gexc
from firebase_admin import firestore

from flickpick.errors import NotFoundError, TransientStoreError
from flickpick.store.base import (
    EVENT_INSERT,
    EVENT_UPDATE,
    STATUS_DEGRADED,
    STATUS_SUBSCRIBED,
    ChangeCallback,
    ChangeEvent,
    StatusCallback,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 400
MONITOR_INTERVAL_SEC = 5.0

_TRANSIENT_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.RetryError,
    gexc.InternalServerError,
)


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except _TRANSIENT_ERRORS as exc:
        raise TransientStoreError(f"Firestore unavailable during {action}: {exc}") from exc


class FirestoreSubscription:
    def __init__(
        self,
        store: "FirestoreStore",
        table: str,
        filters: Mapping[str, Any] | None,
        on_change: ChangeCallback,
        on_status: StatusCallback | None,
    ) -> None:
        self._store = store
        self.table = table
        self.filters = dict(filters or {})
        self.on_change = on_change
        self.on_status = on_status
        self._watch = None
        self._initial_snapshot_seen = False
        self._degraded = False
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def attach(self) -> None:
        self._initial_snapshot_seen = False
        query = self._store._build_query(self.table, self.filters)
        self._watch = query.on_snapshot(self._handle_snapshot)

    def is_healthy(self) -> bool:
        if self._watch is None:
            return False
        return bool(getattr(self._watch, "is_active", True))

    def check(self) -> None:
        """Re-attach a listener whose stream stopped, reporting degraded first."""
        if not self._active or self.is_healthy():
            return
        if not self._degraded:
            self._degraded = True
            self._emit_status(STATUS_DEGRADED, TransientStoreError("Firestore listener lost"))
        try:
            self._close_watch()
            self.attach()
        except Exception as exc:
            logger.warning("Re-attaching %s listener failed: %s", self.table, exc)

    def unsubscribe(self) -> None:
        self._active = False
        self._close_watch()
        self._store._remove_subscription(self)

    def _close_watch(self) -> None:
        if self._watch is not None:
            try:
                self._watch.unsubscribe()
            except Exception:
                logger.exception("Closing %s listener failed", self.table)
            self._watch = None

    def _handle_snapshot(self, doc_snapshots, changes, read_time) -> None:
        if not self._active:
            return
        if not self._initial_snapshot_seen:
            self._initial_snapshot_seen = True
            self._degraded = False
            self._emit_status(STATUS_SUBSCRIBED, None)
            return

        for change in changes:
            kind = change.type.name
            if kind == "ADDED":
                event_kind = EVENT_INSERT
            elif kind == "MODIFIED":
                event_kind = EVENT_UPDATE
            else:
                continue
            row = change.document.to_dict() or {}
            row["id"] = change.document.id
            try:
                self.on_change(ChangeEvent(table=self.table, kind=event_kind, row=row))
            except Exception:
                logger.exception("Subscriber callback failed for %s %s", self.table, event_kind)

    def _emit_status(self, status: str, error: Exception | None) -> None:
        if self.on_status is None:
            return
        try:
            self.on_status(status, error)
        except Exception:
            logger.exception("Subscriber status callback failed (%s)", status)


class FirestoreStore:
    def __init__(self, db, monitor_interval: float = MONITOR_INTERVAL_SEC) -> None:
        self.db = db
        self._monitor_interval = monitor_interval
        self._subscriptions: list[FirestoreSubscription] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._monitor: threading.Thread | None = None

    # ---------- writes ----------

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        payload = dict(row)
        payload["id"] = payload.get("id") or uuid.uuid4().hex
        with _translate_errors(f"insert into {table}"):
            self.db.collection(table).document(payload["id"]).set(payload)
        return payload

    def insert_many(self, table: str, rows: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        stored: list[dict[str, Any]] = []
        collection = self.db.collection(table)

        with _translate_errors(f"batch insert into {table}"):
            batch = self.db.batch()
            batch_count = 0
            for row in rows:
                payload = dict(row)
                payload["id"] = payload.get("id") or uuid.uuid4().hex
                batch.set(collection.document(payload["id"]), payload)
                stored.append(payload)
                batch_count += 1

                if batch_count >= BATCH_SIZE:
                    batch.commit()
                    batch = self.db.batch()
                    batch_count = 0

            if batch_count:
                batch.commit()
        return stored

    def update(self, table: str, row_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        doc_ref = self.db.collection(table).document(row_id)
        with _translate_errors(f"update {table}"):
            try:
                doc_ref.update(dict(changes))
            except gexc.NotFound as exc:
                raise NotFoundError(f"{table} row {row_id} not found") from exc
            snapshot = doc_ref.get()
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    # ---------- reads ----------

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        with _translate_errors(f"get from {table}"):
            snapshot = self.db.collection(table).document(row_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query = self._build_query(table, filters)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)

        rows: list[dict[str, Any]] = []
        with _translate_errors(f"query {table}"):
            for doc in query.stream():
                data = doc.to_dict() or {}
                data["id"] = doc.id
                rows.append(data)
        return rows

    def _build_query(self, table: str, filters: Mapping[str, Any] | None):
        query = self.db.collection(table)
        for key, value in (filters or {}).items():
            query = query.where(key, "==", value)
        return query

    # ---------- change feed ----------

    def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None,
        on_change: ChangeCallback,
        on_status: StatusCallback | None = None,
    ) -> FirestoreSubscription:
        sub = FirestoreSubscription(self, table, filters, on_change, on_status)
        with _translate_errors(f"subscribe to {table}"):
            sub.attach()
        with self._lock:
            self._subscriptions.append(sub)
        self._ensure_monitor()
        return sub

    def close(self) -> None:
        self._stop.set()
        with self._lock:
            subs = list(self._subscriptions)
        for sub in subs:
            sub.unsubscribe()

    def check_subscriptions(self) -> None:
        with self._lock:
            subs = list(self._subscriptions)
        for sub in subs:
            sub.check()

    def _remove_subscription(self, sub: FirestoreSubscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _ensure_monitor(self) -> None:
        if self._monitor is not None and self._monitor.is_alive():
            return
        self._stop.clear()
        self._monitor = threading.Thread(
            target=self._monitor_loop, name="firestore-listener-monitor", daemon=True
        )
        self._monitor.start()

    def _monitor_loop(self) -> None:
        while not self._stop.wait(self._monitor_interval):
            try:
                self.check_subscriptions()
            except Exception:
                logger.exception("Firestore listener check failed")
