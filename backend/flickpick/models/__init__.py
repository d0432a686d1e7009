
from .catalog import CatalogItem
from .match import Match, SessionHistoryItem
from .participant import Participant
from .session import Session, SessionFilters
from .swipe import Swipe

__all__ = [
    "CatalogItem",
    "Match",
    "Participant",
    "Session",
    "SessionFilters",
    "SessionHistoryItem",
    "Swipe",
]
