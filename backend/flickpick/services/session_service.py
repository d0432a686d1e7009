from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from flickpick.config import config_value
from flickpick.errors import ConflictError, NotFoundError
from flickpick.models import Session, SessionFilters
from flickpick.models.session import (
    SESSION_STATUSES,
    STATUS_EXPIRED,
    STATUS_LOBBY,
    TERMINAL_STATUSES,
)
from flickpick.store import DataStore, get_store
from flickpick.store.base import SESSIONS
from flickpick.utils.serialization import utc_now
from flickpick.utils.text import normalize_code
from flickpick.utils.validation import ValidationError, require_fraction

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 24


class SessionService:
    """
    Session records: code, status, threshold, expiry and the host's pick.

    The store layer does not police status transitions; that is
    LifecycleService's job. Writes here are unconditional.
    """

    def __init__(
        self,
        store: DataStore | None = None,
        ttl_hours: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or get_store()
        self.ttl_hours = ttl_hours or config_value("SESSION_TTL_HOURS", DEFAULT_TTL_HOURS)
        self.clock = clock

    # ---------- create / read ----------

    def create_session(
        self,
        code: str,
        host_device_id: str,
        services: Iterable[str],
        filters: SessionFilters | None = None,
        threshold: float = 0.5,
    ) -> Session:
        code = normalize_code(code)
        if not code:
            raise ValidationError("code is required")
        threshold = require_fraction("match_threshold", threshold)

        if self.code_in_use(code):
            raise ConflictError(f"Session code {code} is already in use")

        now = self.clock()
        row = self.store.insert(
            SESSIONS,
            {
                "code": code,
                "status": STATUS_LOBBY,
                "match_threshold": threshold,
                "host_device_id": host_device_id,
                "streaming_services": list(services),
                "filters": (filters or SessionFilters()).to_dict(),
                "created_at": now,
                "expires_at": now + timedelta(hours=self.ttl_hours),
                "selected_match_id": None,
            },
        )
        logger.info("Created session %s (%s)", code, row["id"])
        return Session.from_mapping(row)

    def get_session(self, session_id: str) -> Session:
        row = self.store.get(SESSIONS, session_id)
        if row is None:
            raise NotFoundError("Session not found.")
        return Session.from_mapping(row)

    def lookup_by_code(self, code: str) -> Session | None:
        """Only a non-expired lobby session is joinable by code."""
        code = normalize_code(code)
        if not code:
            return None

        now = self.clock()
        for row in self.store.query(SESSIONS, {"code": code, "status": STATUS_LOBBY}):
            session = Session.from_mapping(row)
            if not session.is_expired(now):
                return session
        return None

    def code_in_use(self, code: str) -> bool:
        return self.lookup_by_code(code) is not None

    def effective_status(self, session: Session, now: datetime | None = None) -> str:
        """Expiry is derived at read time; the stored status is never rewritten."""
        now = now or self.clock()
        if session.status not in TERMINAL_STATUSES and session.is_expired(now):
            return STATUS_EXPIRED
        return session.status

    # ---------- writes ----------

    def transition_status(self, session_id: str, new_status: str) -> Session:
        if new_status not in SESSION_STATUSES:
            raise ValidationError(f"Unknown session status: {new_status}")
        row = self.store.update(SESSIONS, session_id, {"status": new_status})
        logger.info("Session %s -> %s", session_id, new_status)
        return Session.from_mapping(row)

    def set_selected_winner(self, session_id: str, catalog_item_id: str) -> Session:
        row = self.store.update(SESSIONS, session_id, {"selected_match_id": catalog_item_id})
        return Session.from_mapping(row)

