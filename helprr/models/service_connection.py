"""Upstream service connection model"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from helprr.models import Base


class ServiceConnection(Base):
    """Base URL and credential for one upstream service."""

    __tablename__ = "service_connections"

    id = Column(Integer, primary_key=True)
    service = Column(String(20), nullable=False, unique=True)
    url = Column(Text, nullable=False)
    api_key = Column(Text, nullable=False, default="")
    username = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        """Convert to dictionary. The credential is never included."""
        return {
            "service": self.service,
            "url": self.url,
            "username": self.username,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
