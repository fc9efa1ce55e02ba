from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.sqlite import JSON

from helprr.models import Base


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    ENDPOINT_GONE = "endpoint_gone"
    TRANSIENT_ERROR = "transient_error"


class NotificationHistory(Base):
    """In-app feed of every event that was dispatched."""

    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True)
    event_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    tag = Column(String(255), nullable=False)
    details = Column(JSON, default=dict)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notification_history_event_type", "event_type"),
        Index("ix_notification_history_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "title": self.title,
            "body": self.body,
            "tag": self.tag,
            "details": self.details or {},
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


class DeliveryAttempt(Base):
    """Audit record of one push attempt to one endpoint."""

    __tablename__ = "delivery_attempts"

    id = Column(Integer, primary_key=True)
    endpoint = Column(Text, nullable=False)
    event_kind = Column(String(50), nullable=False)
    tag = Column(String(255), nullable=False)
    outcome = Column(String(20), nullable=False)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_delivery_attempts_sent_at", "sent_at"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "endpoint": self.endpoint,
            "event_kind": self.event_kind,
            "tag": self.tag,
            "outcome": self.outcome,
            "error": self.error,
            "sent_at": self.sent_at.isoformat(),
        }
