"""
Diff rules for Jellyfin.

activity_ids  Seen activity-log ids. New "item added" entries fire
              jellyfinItemAdded.
sessions      Session id -> now-playing item id. A session that starts a
              different item fires jellyfinPlaybackStart.
"""

from __future__ import annotations

from typing import Any

from helprr.core.exceptions import DetectionError
from helprr.core.helpers import bounded_append, parse_upstream_datetime
from helprr.schemas.events import DetectedEvent, DetectionResult, EventKind, Snapshot
from helprr.services.detection.common import (
    MAX_SEEN_IDS,
    optional_str,
    require_dict,
    require_id,
    scan,
)

DASHBOARD_URL = "/dashboard"


def _is_item_added(record: dict[str, Any]) -> bool:
    if record.get("Type") == "ItemAdded":
        return True
    name = optional_str(record, "Name") or ""
    return "added to library" in name.lower()


def detect_jellyfin(snapshot: Snapshot, cursor: dict[str, Any]) -> DetectionResult:
    service = snapshot.service
    events: list[DetectedEvent] = []

    previous_ids = [str(i) for i in cursor.get("activity_ids") or []]
    seen = set(previous_ids)
    new_ids: list[str] = []

    def handle_activity(raw: Any) -> None:
        record = require_dict(raw)
        entry_id = require_id(record, "Id")
        if entry_id in seen:
            return

        event = None
        if _is_item_added(record):
            occurred_at = (
                parse_upstream_datetime(record["Date"]) if "Date" in record else None
            )
            event = DetectedEvent(
                event_kind=EventKind.JELLYFIN_ITEM_ADDED,
                source_service=service,
                subject_id=entry_id,
                title=optional_str(record, "Overview")
                or optional_str(record, "Name")
                or f"Activity {entry_id}",
                occurred_at=occurred_at,
                metadata={"url": DASHBOARD_URL},
            )

        seen.add(entry_id)
        new_ids.append(entry_id)
        if event is not None:
            events.append(event)

    skipped = scan(snapshot.get("activity"), service, "activity", handle_activity)

    previous_sessions: dict[str, str] = dict(cursor.get("sessions") or {})
    current_sessions: dict[str, str] = {}

    def handle_session(raw: Any) -> None:
        record = require_dict(raw)
        session_id = require_id(record, "Id")
        try:
            item = require_dict(record.get("NowPlayingItem"))
            item_id = require_id(item, "Id")
        except DetectionError:
            # Known session, unreadable item: remember the last item so the
            # same playback is not announced again next cycle.
            if session_id in previous_sessions:
                current_sessions[session_id] = previous_sessions[session_id]
            raise

        event = None
        if previous_sessions.get(session_id) != item_id:
            name = optional_str(item, "Name") or item_id
            series = optional_str(item, "SeriesName")
            title = f"{series} - {name}" if series else name
            metadata = {"url": DASHBOARD_URL, "item_id": item_id}
            user = optional_str(record, "UserName")
            if user:
                metadata["user"] = user
            device = optional_str(record, "DeviceName")
            if device:
                metadata["device"] = device
            event = DetectedEvent(
                event_kind=EventKind.JELLYFIN_PLAYBACK_START,
                source_service=service,
                subject_id=f"{session_id}:{item_id}",
                title=title,
                occurred_at=snapshot.fetched_at,
                metadata=metadata,
            )

        current_sessions[session_id] = item_id
        if event is not None:
            events.append(event)

    skipped += scan(snapshot.get("sessions"), service, "session", handle_session)

    next_cursor = dict(cursor)
    next_cursor["activity_ids"] = bounded_append(previous_ids, new_ids, MAX_SEEN_IDS)
    next_cursor["sessions"] = current_sessions
    return DetectionResult(events=events, cursor=next_cursor, skipped=skipped)
