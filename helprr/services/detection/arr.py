"""
Diff rules for Sonarr and Radarr.

Four independent sections share one cursor document:

    history_ids  Seen history ids. New ids become grabbed/imported/failed
                 events; position in the page is irrelevant.
    queue        Queue id -> last status key. Entering a failure status
                 fires once.
    health       Signatures of the warnings present last cycle. A signature
                 fires when it appears, again only after it has gone away.
    upcoming     Release key -> air time. A release fires once: when it is
                 at most notify_before_mins from airing (before_air), or in
                 the first digest whose lookahead window holds it
                 (daily_digest).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from helprr.core.exceptions import DetectionError
from helprr.core.helpers import bounded_append, parse_upstream_datetime, signature
from helprr.schemas.events import (
    DetectedEvent,
    DetectionResult,
    EventKind,
    ServiceKind,
    Snapshot,
    UpcomingNotifyMode,
)
from helprr.services.detection.common import (
    MAX_SEEN_IDS,
    optional_str,
    require_dict,
    require_id,
    require_str,
    scan,
)

HISTORY_EVENT_KINDS = {
    "grabbed": EventKind.GRABBED,
    "downloadFolderImported": EventKind.IMPORTED,
    "episodeFileImported": EventKind.IMPORTED,
    "movieFileImported": EventKind.IMPORTED,
    "seriesFolderImported": EventKind.IMPORTED,
    "downloadFailed": EventKind.DOWNLOAD_FAILED,
    "importFailed": EventKind.IMPORT_FAILED,
}

QUEUE_OK = "ok"
IMPORT_FAILED_STATES = ("importFailed", "importBlocked")
DOWNLOAD_FAILED_STATUSES = ("warning", "error")

# Upcoming keys are forgotten this long after their air time.
UPCOMING_TTL = timedelta(days=7)

# Date (UTC) of the last daily digest, so it runs once per day.
DIGEST_CURSOR_KEY = "upcoming_digest_on"

RADARR_RELEASE_FIELDS = (
    ("inCinemas", "cinema"),
    ("physicalRelease", "physical"),
    ("digitalRelease", "digital"),
)


def detect_arr(snapshot: Snapshot, cursor: dict[str, Any]) -> DetectionResult:
    events: list[DetectedEvent] = []
    next_cursor = dict(cursor)
    skipped = 0

    skipped += _detect_history(snapshot, cursor, next_cursor, events)
    skipped += _detect_queue(snapshot, cursor, next_cursor, events)
    skipped += _detect_health(snapshot, cursor, next_cursor, events)
    skipped += _detect_upcoming(snapshot, cursor, next_cursor, events)

    return DetectionResult(events=events, cursor=next_cursor, skipped=skipped)


def _target_url(service: ServiceKind, record: dict[str, Any]) -> str | None:
    if service == ServiceKind.SONARR and isinstance(record.get("seriesId"), int):
        return f"/series/{record['seriesId']}"
    if service == ServiceKind.RADARR and isinstance(record.get("movieId"), int):
        return f"/movies/{record['movieId']}"
    return None


def _detect_history(
    snapshot: Snapshot,
    cursor: dict[str, Any],
    next_cursor: dict[str, Any],
    events: list[DetectedEvent],
) -> int:
    service = snapshot.service
    previous = [str(i) for i in cursor.get("history_ids") or []]
    seen = set(previous)
    new_ids: list[str] = []

    def handle(raw: Any) -> None:
        record = require_dict(raw)
        history_id = require_id(record)
        if history_id in seen:
            return
        event_type = require_str(record, "eventType")
        kind = HISTORY_EVENT_KINDS.get(event_type)

        event = None
        if kind is not None:
            occurred_at = (
                parse_upstream_datetime(record["date"]) if "date" in record else None
            )
            metadata = {"event_type": event_type}
            url = _target_url(service, record)
            if url:
                metadata["url"] = url
            download_id = optional_str(record, "downloadId")
            if download_id:
                metadata["download_id"] = download_id
            event = DetectedEvent(
                event_kind=kind,
                source_service=service,
                subject_id=history_id,
                title=optional_str(record, "sourceTitle") or f"History #{history_id}",
                occurred_at=occurred_at,
                metadata=metadata,
            )

        seen.add(history_id)
        new_ids.append(history_id)
        if event is not None:
            events.append(event)

    skipped = scan(snapshot.get("history"), service, "history", handle)
    next_cursor["history_ids"] = bounded_append(previous, new_ids, MAX_SEEN_IDS)
    return skipped


def _queue_status(record: dict[str, Any]) -> str:
    state = record.get("trackedDownloadState")
    status = record.get("trackedDownloadStatus")
    if state is not None and not isinstance(state, str):
        raise DetectionError(f"Invalid trackedDownloadState: {state!r}")
    if status is not None and not isinstance(status, str):
        raise DetectionError(f"Invalid trackedDownloadStatus: {status!r}")
    if state in IMPORT_FAILED_STATES:
        return EventKind.IMPORT_FAILED.value
    if status in DOWNLOAD_FAILED_STATUSES:
        return EventKind.DOWNLOAD_FAILED.value
    return QUEUE_OK


def _detect_queue(
    snapshot: Snapshot,
    cursor: dict[str, Any],
    next_cursor: dict[str, Any],
    events: list[DetectedEvent],
) -> int:
    service = snapshot.service
    previous: dict[str, str] = dict(cursor.get("queue") or {})
    current: dict[str, str] = {}

    def handle(raw: Any) -> None:
        record = require_dict(raw)
        queue_id = require_id(record)
        try:
            status = _queue_status(record)
        except DetectionError:
            # Known id, unreadable status: keep the last status so an
            # unchanged failure is not reported again next cycle.
            if queue_id in previous:
                current[queue_id] = previous[queue_id]
            raise

        event = None
        if status != QUEUE_OK and previous.get(queue_id) != status:
            messages = [
                m.get("title")
                for m in record.get("statusMessages") or []
                if isinstance(m, dict) and isinstance(m.get("title"), str)
            ]
            metadata: dict[str, Any] = {"queue_id": queue_id}
            if messages:
                metadata["messages"] = messages
            url = _target_url(service, record)
            if url:
                metadata["url"] = url
            event = DetectedEvent(
                event_kind=EventKind(status),
                source_service=service,
                subject_id=f"queue-{queue_id}",
                title=optional_str(record, "title") or f"Queue item {queue_id}",
                occurred_at=snapshot.fetched_at,
                metadata=metadata,
            )

        current[queue_id] = status
        if event is not None:
            events.append(event)

    skipped = scan(snapshot.get("queue"), service, "queue", handle)
    next_cursor["queue"] = current
    return skipped


def _detect_health(
    snapshot: Snapshot,
    cursor: dict[str, Any],
    next_cursor: dict[str, Any],
    events: list[DetectedEvent],
) -> int:
    service = snapshot.service
    previous = set(cursor.get("health") or [])
    current: list[str] = []

    def handle(raw: Any) -> None:
        record = require_dict(raw)
        message = require_str(record, "message")
        check_type = optional_str(record, "type") or "warning"
        if check_type == "ok":
            return
        source = optional_str(record, "source")
        sig = signature(service.value, source, check_type, message)
        if sig in current:
            return

        event = None
        if sig not in previous:
            metadata = {"source": source, "type": check_type}
            wiki_url = optional_str(record, "wikiUrl")
            if wiki_url:
                metadata["wiki_url"] = wiki_url
            event = DetectedEvent(
                event_kind=EventKind.HEALTH_WARNING,
                source_service=service,
                subject_id=sig,
                title=message,
                occurred_at=snapshot.fetched_at,
                metadata=metadata,
            )

        current.append(sig)
        if event is not None:
            events.append(event)

    skipped = scan(snapshot.get("health"), service, "health", handle)
    next_cursor["health"] = current
    return skipped


def _calendar_url(service: ServiceKind, record: dict[str, Any]) -> str | None:
    if service == ServiceKind.RADARR:
        return f"/movies/{record['id']}"
    return _target_url(service, record)


def _episode_release(record: dict[str, Any]) -> list[tuple[str, str, str]]:
    """(key, air time, title) for a Sonarr calendar entry."""
    episode_id = require_id(record)
    air = optional_str(record, "airDateUtc")
    if not air:
        return []

    series = record.get("series")
    series_title = series.get("title") if isinstance(series, dict) else None
    season = record.get("seasonNumber")
    number = record.get("episodeNumber")
    label = series_title or "Unknown series"
    if isinstance(season, int) and isinstance(number, int):
        label = f"{label} S{season:02d}E{number:02d}"
    episode_title = optional_str(record, "title")
    if episode_title:
        label = f"{label} - {episode_title}"
    return [(f"episode:{episode_id}", air, label)]


def _movie_releases(record: dict[str, Any]) -> list[tuple[str, str, str]]:
    """(key, release time, title) for each dated release of a Radarr movie."""
    movie_id = require_id(record)
    title = optional_str(record, "title") or f"Movie {movie_id}"
    year = record.get("year")
    if isinstance(year, int) and year > 0:
        title = f"{title} ({year})"

    releases = []
    for field_name, release_type in RADARR_RELEASE_FIELDS:
        value = optional_str(record, field_name)
        if value:
            releases.append((f"movie:{movie_id}:{release_type}", value, title))
    return releases


def _detect_upcoming(
    snapshot: Snapshot,
    cursor: dict[str, Any],
    next_cursor: dict[str, Any],
    events: list[DetectedEvent],
) -> int:
    service = snapshot.service
    policy = snapshot.upcoming
    window_start = snapshot.fetched_at
    window_end = window_start + timedelta(hours=snapshot.lookahead_hours)
    forget_before = window_start - UPCOMING_TTL

    remembered: dict[str, str] = {}
    for key, air in (cursor.get("upcoming") or {}).items():
        try:
            if parse_upstream_datetime(air) >= forget_before:
                remembered[key] = air
        except DetectionError:
            continue

    if policy.mode == UpcomingNotifyMode.BEFORE_AIR:
        window_end = min(
            window_end, window_start + timedelta(minutes=policy.notify_before_mins)
        )
    else:
        today = window_start.date().isoformat()
        if (
            window_start.hour != policy.daily_notify_hour
            or cursor.get(DIGEST_CURSOR_KEY) == today
        ):
            next_cursor["upcoming"] = remembered
            return 0
        next_cursor[DIGEST_CURSOR_KEY] = today

    releases_for = _episode_release if service == ServiceKind.SONARR else _movie_releases

    def handle(raw: Any) -> None:
        record = require_dict(raw)
        found = []
        for key, air, label in releases_for(record):
            air_at = parse_upstream_datetime(air)
            if key in remembered or not (window_start <= air_at <= window_end):
                continue
            metadata: dict[str, Any] = {"air_date": air}
            url = _calendar_url(service, record)
            if url:
                metadata["url"] = url
            found.append(
                (
                    key,
                    air,
                    DetectedEvent(
                        event_kind=EventKind.UPCOMING_PREMIERE,
                        source_service=service,
                        subject_id=key,
                        title=label,
                        occurred_at=air_at,
                        metadata=metadata,
                    ),
                )
            )

        for key, air, event in found:
            remembered[key] = air
            events.append(event)

    skipped = scan(snapshot.get("calendar"), service, "calendar", handle)
    next_cursor["upcoming"] = remembered
    return skipped
