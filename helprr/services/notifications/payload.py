"""Renders DetectedEvents into push payloads."""

from __future__ import annotations

from helprr.schemas.events import DetectedEvent, EventKind, PushPayload, ServiceKind

MAX_BODY_LENGTH = 200

# (event kind, service) -> heading; falls back to the kind-only entry.
HEADINGS: dict[tuple[EventKind, ServiceKind | None], str] = {
    (EventKind.GRABBED, ServiceKind.SONARR): "Download Started",
    (EventKind.GRABBED, ServiceKind.RADARR): "Movie Download Started",
    (EventKind.IMPORTED, ServiceKind.SONARR): "Episode Imported",
    (EventKind.IMPORTED, ServiceKind.RADARR): "Movie Imported",
    (EventKind.DOWNLOAD_FAILED, ServiceKind.SONARR): "Download Failed",
    (EventKind.DOWNLOAD_FAILED, ServiceKind.RADARR): "Movie Download Failed",
    (EventKind.IMPORT_FAILED, ServiceKind.SONARR): "Import Failed",
    (EventKind.IMPORT_FAILED, ServiceKind.RADARR): "Movie Import Failed",
    (EventKind.UPCOMING_PREMIERE, ServiceKind.SONARR): "Upcoming Episode",
    (EventKind.UPCOMING_PREMIERE, ServiceKind.RADARR): "Upcoming Movie",
    (EventKind.TORRENT_ADDED, None): "Torrent Added",
    (EventKind.TORRENT_COMPLETED, None): "Download Complete",
    (EventKind.TORRENT_DELETED, None): "Torrent Removed",
    (EventKind.JELLYFIN_ITEM_ADDED, None): "Media Added to Jellyfin",
    (EventKind.JELLYFIN_PLAYBACK_START, None): "Playback Started",
}

DEFAULT_URLS = {
    EventKind.HEALTH_WARNING: "/settings",
    EventKind.TORRENT_ADDED: "/torrents",
    EventKind.TORRENT_COMPLETED: "/torrents",
    EventKind.TORRENT_DELETED: "/torrents",
    EventKind.JELLYFIN_ITEM_ADDED: "/dashboard",
    EventKind.JELLYFIN_PLAYBACK_START: "/dashboard",
}


def heading(event: DetectedEvent) -> str:
    if event.event_kind == EventKind.HEALTH_WARNING:
        return f"{event.source_service.label} Health Warning"
    return (
        HEADINGS.get((event.event_kind, event.source_service))
        or HEADINGS.get((event.event_kind, None))
        or event.event_kind.value
    )


def render_payload(event: DetectedEvent) -> PushPayload:
    """Build the {title, body, tag, url} payload for an event."""
    body = event.title
    user = event.metadata.get("user")
    if event.event_kind == EventKind.JELLYFIN_PLAYBACK_START and user:
        body = f"{user} is watching {event.title}"

    url = event.metadata.get("url") or DEFAULT_URLS.get(event.event_kind, "/activity")
    return PushPayload(
        title=heading(event),
        body=body[:MAX_BODY_LENGTH],
        tag=event.tag,
        url=url,
    )
