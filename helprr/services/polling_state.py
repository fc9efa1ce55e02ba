"""
Polling state store.

The only writer of the polling_state table. Cursors are read at the start of
a cycle and written once at the end of a cycle whose detection completed.
Writes are serialised with an in-process lock; there is no multi-process
coordination.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any

from helprr.core.logging import get_logger
from helprr.models import PollingState
from helprr.schemas.events import ServiceKind

logger = get_logger("polling_state")


class PollingStateStore:
    """Persistent per-service cursors."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def load(self, service: ServiceKind) -> dict[str, Any] | None:
        """
        Return a copy of the stored cursor, or None if the service has never
        completed a cycle.
        """
        with self.session_factory() as db:
            row = db.query(PollingState).filter_by(service=service.value).first()
            if row is None:
                return None
            return copy.deepcopy(row.cursor or {})

    def advance(
        self,
        service: ServiceKind,
        cursor: dict[str, Any],
        polled_at: datetime,
    ) -> None:
        """
        Persist the cursor produced by a completed cycle.

        Creates the row lazily on the first successful cycle.
        """
        with self._lock, self.session_factory() as db:
            row = db.query(PollingState).filter_by(service=service.value).first()
            if row is None:
                row = PollingState(service=service.value)
                db.add(row)
            # Assign a fresh object so the JSON column is flagged dirty.
            row.cursor = copy.deepcopy(cursor)
            row.last_polled_at = polled_at
            db.commit()
        logger.debug("Advanced %s cursor", service.value)

    def reset(self, service: ServiceKind) -> None:
        """Explicitly clear a cursor. The next cycle treats everything as new."""
        with self._lock, self.session_factory() as db:
            row = db.query(PollingState).filter_by(service=service.value).first()
            if row is not None:
                row.cursor = {}
                db.commit()
        logger.info("Reset %s cursor", service.value)

    def delete(self, service: ServiceKind) -> None:
        """Remove a cursor. Only used when the service connection is removed."""
        with self._lock, self.session_factory() as db:
            db.query(PollingState).filter_by(service=service.value).delete(
                synchronize_session=False
            )
            db.commit()

    def all(self) -> list[dict[str, Any]]:
        """Every cursor row, for diagnostics ("last polled at")."""
        with self.session_factory() as db:
            rows = db.query(PollingState).order_by(PollingState.service).all()
            return [row.to_dict() for row in rows]
