from __future__ import annotations

import logging
from typing import Iterable

from flickpick.errors import ConflictError, NotFoundError
from flickpick.models import CatalogItem
from flickpick.store import DataStore, get_store
from flickpick.store.base import CATALOG_ITEMS
from flickpick.utils.validation import ValidationError

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Write-once, per-session list of candidate titles.

    display_order is the swipe sequence every participant walks through, so
    fetch_catalog always returns items sorted by it. A participant's
    swipe_progress is an index into that sequence.
    """

    def __init__(self, store: DataStore | None = None) -> None:
        self.store = store or get_store()

    def seed_catalog(self, session_id: str, items: Iterable[CatalogItem]) -> list[CatalogItem]:
        if self.store.query(CATALOG_ITEMS, {"session_id": session_id}, limit=1):
            raise ConflictError("Catalog already seeded for this session")

        rows = []
        seen_orders: set[int] = set()
        for position, item in enumerate(items, start=1):
            display_order = item.display_order if item.display_order is not None else position
            if display_order in seen_orders:
                raise ValidationError(f"Duplicate display_order {display_order} in catalog")
            seen_orders.add(display_order)

            row = item.to_dict()
            row.pop("id", None)
            row["session_id"] = session_id
            row["display_order"] = display_order
            rows.append(row)

        stored = self.store.insert_many(CATALOG_ITEMS, rows) if rows else []
        logger.info("Seeded %d catalog items for session %s", len(stored), session_id)

        catalog = [CatalogItem.from_mapping(row) for row in stored]
        catalog.sort(key=lambda item: item.display_order)
        return catalog

    def fetch_catalog(self, session_id: str) -> list[CatalogItem]:
        rows = self.store.query(CATALOG_ITEMS, {"session_id": session_id}, order_by="display_order")
        return [CatalogItem.from_mapping(row) for row in rows]

    def get_item(self, catalog_item_id: str, session_id: str | None = None) -> CatalogItem:
        row = self.store.get(CATALOG_ITEMS, catalog_item_id)
        if row is None or (session_id is not None and row.get("session_id") != session_id):
            raise NotFoundError("Catalog item not found.")
        return CatalogItem.from_mapping(row)
