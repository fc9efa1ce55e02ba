"""Push subscription and per-event preference models"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from helprr.models import Base


class PushSubscription(Base):
    """A device registered for Web Push delivery."""

    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True)
    endpoint = Column(Text, nullable=False, unique=True)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    device_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    preferences = relationship(
        "NotificationPreference",
        back_populates="subscription",
        cascade="all, delete-orphan",
    )

    def preference_for(self, event_type: str) -> bool:
        """Return whether this device wants ``event_type``. Missing rows mean enabled."""
        for pref in self.preferences:
            if pref.event_type == event_type:
                return bool(pref.enabled)
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "endpoint": self.endpoint,
            "device_name": self.device_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "preferences": {p.event_type: p.enabled for p in self.preferences},
        }


class NotificationPreference(Base):
    """Per-subscription toggle for one event type."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(
        Integer,
        ForeignKey("push_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(String(50), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    subscription = relationship("PushSubscription", back_populates="preferences")

    __table_args__ = (
        UniqueConstraint("subscription_id", "event_type", name="uq_pref_sub_event"),
    )
