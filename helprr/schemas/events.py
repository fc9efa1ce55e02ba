"""
Event schemas.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServiceKind(str, Enum):
    """Upstream services that are polled."""

    SONARR = "sonarr"
    RADARR = "radarr"
    QBITTORRENT = "qbittorrent"
    JELLYFIN = "jellyfin"

    @property
    def label(self) -> str:
        return SERVICE_LABELS[self]


SERVICE_LABELS = {
    ServiceKind.SONARR: "Sonarr",
    ServiceKind.RADARR: "Radarr",
    ServiceKind.QBITTORRENT: "qBittorrent",
    ServiceKind.JELLYFIN: "Jellyfin",
}


class EventKind(str, Enum):
    """Classification of a detected state transition."""

    GRABBED = "grabbed"
    IMPORTED = "imported"
    DOWNLOAD_FAILED = "downloadFailed"
    IMPORT_FAILED = "importFailed"
    HEALTH_WARNING = "healthWarning"
    UPCOMING_PREMIERE = "upcomingPremiere"
    TORRENT_ADDED = "torrentAdded"
    TORRENT_COMPLETED = "torrentCompleted"
    TORRENT_DELETED = "torrentDeleted"
    JELLYFIN_ITEM_ADDED = "jellyfinItemAdded"
    JELLYFIN_PLAYBACK_START = "jellyfinPlaybackStart"


class DetectedEvent(BaseModel):
    """A new upstream event, produced once per state transition."""

    model_config = ConfigDict(frozen=True)

    event_kind: EventKind
    source_service: ServiceKind
    subject_id: str
    title: str
    occurred_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def tag(self) -> str:
        """Stable per kind and subject so redelivered duplicates collapse."""
        return f"{self.event_kind.value}:{self.source_service.value}:{self.subject_id}"


class UpcomingNotifyMode(str, Enum):
    """When upcoming premiere alerts are sent."""

    BEFORE_AIR = "before_air"
    DAILY_DIGEST = "daily_digest"


class UpcomingPolicy(BaseModel):
    """
    Upcoming premiere alert settings in effect for one cycle.

    before_air alerts a release once it is at most ``notify_before_mins``
    away. daily_digest alerts everything inside the lookahead window, once a
    day, on the first cycle in ``daily_notify_hour`` (UTC).
    """

    model_config = ConfigDict(frozen=True)

    mode: UpcomingNotifyMode = UpcomingNotifyMode.BEFORE_AIR
    notify_before_mins: int = Field(default=60, gt=0)
    daily_notify_hour: int = Field(default=9, ge=0, le=23)


class Snapshot(BaseModel):
    """Raw records fetched from one service in one cycle."""

    service: ServiceKind
    fetched_at: datetime
    records: dict[str, list[Any]] = Field(default_factory=dict)
    lookahead_hours: int = 24
    upcoming: UpcomingPolicy = Field(default_factory=UpcomingPolicy)

    def get(self, name: str) -> list[Any]:
        return self.records.get(name) or []


class DetectionResult(BaseModel):
    """Events found in a snapshot plus the cursor to persist afterwards."""

    events: list[DetectedEvent] = Field(default_factory=list)
    cursor: dict[str, Any] = Field(default_factory=dict)
    skipped: int = 0


class PushPayload(BaseModel):
    """JSON body delivered to the push service; read by the service worker."""

    title: str
    body: str
    tag: str
    url: str = "/notifications"
