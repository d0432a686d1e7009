from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Any, Mapping

from flickpick.errors import ConflictError, NotFoundError, TransientStoreError
from flickpick.store.base import (
    EVENT_INSERT,
    EVENT_UPDATE,
    STATUS_DEGRADED,
    STATUS_SUBSCRIBED,
    TABLES,
    ChangeCallback,
    ChangeEvent,
    StatusCallback,
    matches_filters,
)

logger = logging.getLogger(__name__)


class MemorySubscription:
    def __init__(
        self,
        store: "MemoryStore",
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
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        self._active = False
        self._store._remove_subscription(self)


class MemoryStore:
    """
    In-process implementation of the DataStore protocol.

    Thread-safe; change events are delivered synchronously on the writer's
    thread after the write is committed. `disconnect()` / `reconnect()`
    simulate losing the backing service: writes raise TransientStoreError and
    subscribers get a "degraded" status until the store comes back.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in TABLES}
        self._subscriptions: list[MemorySubscription] = []
        self._online = True

    # ---------- connectivity ----------

    def disconnect(self) -> None:
        with self._lock:
            self._online = False
            subs = list(self._subscriptions)
        error = TransientStoreError("store connection lost")
        for sub in subs:
            self._notify_status(sub, STATUS_DEGRADED, error)

    def reconnect(self) -> None:
        with self._lock:
            self._online = True
            subs = list(self._subscriptions)
        for sub in subs:
            self._notify_status(sub, STATUS_SUBSCRIBED, None)

    def _ensure_online(self) -> None:
        if not self._online:
            raise TransientStoreError("store is unreachable")

    # ---------- writes ----------

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        return self.insert_many(table, [row])[0]

    def insert_many(self, table: str, rows: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        with self._lock:
            self._ensure_online()
            rows_by_id = self._table(table)
            stored: list[dict[str, Any]] = []
            for row in rows:
                payload = copy.deepcopy(dict(row))
                row_id = payload.get("id") or uuid.uuid4().hex
                if row_id in rows_by_id:
                    raise ConflictError(f"{table} row {row_id} already exists")
                payload["id"] = row_id
                rows_by_id[row_id] = payload
                stored.append(copy.deepcopy(payload))

        for payload in stored:
            self._dispatch(ChangeEvent(table=table, kind=EVENT_INSERT, row=payload))
        return stored

    def update(self, table: str, row_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._ensure_online()
            rows_by_id = self._table(table)
            current = rows_by_id.get(row_id)
            if current is None:
                raise NotFoundError(f"{table} row {row_id} not found")
            current.update(copy.deepcopy(dict(changes)))
            current["id"] = row_id
            snapshot = copy.deepcopy(current)

        self._dispatch(ChangeEvent(table=table, kind=EVENT_UPDATE, row=snapshot))
        return snapshot

    # ---------- reads ----------

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        with self._lock:
            self._ensure_online()
            row = self._table(table).get(row_id)
            return copy.deepcopy(row) if row is not None else None

    def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            self._ensure_online()
            rows = [
                copy.deepcopy(row)
                for row in self._table(table).values()
                if matches_filters(row, filters)
            ]

        if order_by:
            # stable sort: equal keys keep insertion order
            rows.sort(
                key=lambda r: (r.get(order_by) is not None, r.get(order_by)),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows

    # ---------- change feed ----------

    def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None,
        on_change: ChangeCallback,
        on_status: StatusCallback | None = None,
    ) -> MemorySubscription:
        self._table(table)
        sub = MemorySubscription(self, table, filters, on_change, on_status)
        with self._lock:
            self._subscriptions.append(sub)
            online = self._online

        if online:
            self._notify_status(sub, STATUS_SUBSCRIBED, None)
        else:
            self._notify_status(sub, STATUS_DEGRADED, TransientStoreError("store is unreachable"))
        return sub

    def _remove_subscription(self, sub: MemorySubscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _dispatch(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [
                sub
                for sub in self._subscriptions
                if sub.active and sub.table == event.table and matches_filters(event.row, sub.filters)
            ]
        for sub in targets:
            try:
                sub.on_change(event)
            except Exception:
                logger.exception("Subscriber callback failed for %s %s", event.table, event.kind)

    def _notify_status(self, sub: MemorySubscription, status: str, error: Exception | None) -> None:
        if sub.on_status is None or not sub.active:
            return
        try:
            sub.on_status(status, error)
        except Exception:
            logger.exception("Subscriber status callback failed (%s)", status)

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        if table not in self._tables:
            raise ValueError(f"Unknown table: {table}")
        return self._tables[table]
