from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Protocol

from flickpick.models import CatalogItem, SessionFilters


class CatalogBuilder(Protocol):
    """Turns a host's filters + selected services into an ordered candidate list."""

    def build(self, filters: SessionFilters, services: list[str]) -> list[CatalogItem]:
        ...


class StaticCatalogBuilder:
    """Catalog supplied up front by the caller (request body, fixtures)."""

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self.items = list(items)

    def build(self, filters: SessionFilters, services: list[str]) -> list[CatalogItem]:
        return renumber(self.items)


def interleave(movies: list[CatalogItem], shows: list[CatalogItem]) -> list[CatalogItem]:
    """movie, show, movie, show... then whatever is left of the longer list."""
    combined: list[CatalogItem] = []
    for i in range(max(len(movies), len(shows))):
        if i < len(movies):
            combined.append(movies[i])
        if i < len(shows):
            combined.append(shows[i])
    return combined


def renumber(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    return [replace(item, display_order=i) for i, item in enumerate(items, start=1)]
