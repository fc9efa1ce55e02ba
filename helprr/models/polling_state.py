"""Polling cursor model"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.sqlite import JSON

from helprr.models import Base


class PollingState(Base):
    """
    Per-service cursor describing what was already observed upstream.

    The cursor document is service-specific (seen history ids, last known
    torrent states, ...). Rows are written only by PollingStateStore.
    """

    __tablename__ = "polling_state"

    id = Column(Integer, primary_key=True)
    service = Column(String(20), nullable=False, unique=True)
    cursor = Column(JSON, nullable=False, default=dict)
    last_polled_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "cursor": self.cursor or {},
            "last_polled_at": self.last_polled_at.isoformat()
            if self.last_polled_at
            else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
