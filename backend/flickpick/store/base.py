"""
Durable store abstraction.

The session core only needs four tables (sessions, participants,
catalog_items, swipes) and four capabilities:

- point reads/writes by id
- equality-filtered reads ordered by a sort key
- inserts that assign ids
- subscriptions on a table + filter that deliver insert/update events,
  plus a status signal ("subscribed" / "degraded") that is distinct from
  "no events yet"

Implementations: MemoryStore (tests, local dev) and FirestoreStore (production).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

SESSIONS = "sessions"
PARTICIPANTS = "participants"
CATALOG_ITEMS = "catalog_items"
SWIPES = "swipes"

TABLES = (SESSIONS, PARTICIPANTS, CATALOG_ITEMS, SWIPES)

EVENT_INSERT = "insert"
EVENT_UPDATE = "update"

STATUS_SUBSCRIBED = "subscribed"
STATUS_DEGRADED = "degraded"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    table: str
    kind: str  # "insert" | "update"
    row: dict[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[ChangeEvent], None]
StatusCallback = Callable[[str, Exception | None], None]


def matches_filters(row: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(key) == value for key, value in filters.items())


class Subscription(Protocol):
    @property
    def active(self) -> bool:
        ...

    def unsubscribe(self) -> None:
        ...


class DataStore(Protocol):
    """Row store used by every core service. Rows are plain dicts with an "id"."""

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row; assigns "id" when missing and returns the stored row."""
        ...

    def insert_many(self, table: str, rows: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        ...

    def update(self, table: str, row_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Merge `changes` into an existing row. Raises NotFoundError if absent."""
        ...

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        ...

    def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None,
        on_change: ChangeCallback,
        on_status: StatusCallback | None = None,
    ) -> Subscription:
        ...
