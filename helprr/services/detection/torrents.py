"""
Diff rules for qBittorrent.

The cursor keeps the last known state of every torrent by hash:

    absent  -> present        torrentAdded
    progress reaches 1.0      torrentCompleted (once per torrent)
    present -> absent         torrentDeleted

A torrent that is already complete when first seen is recorded as
completed without a torrentCompleted event.
"""

from __future__ import annotations

from typing import Any

from helprr.core.exceptions import DetectionError
from helprr.schemas.events import DetectedEvent, DetectionResult, EventKind, Snapshot
from helprr.services.detection.common import (
    epoch_to_datetime,
    optional_str,
    require_dict,
    require_str,
    scan,
)

TORRENTS_URL = "/torrents"


def _progress(record: dict[str, Any]) -> float:
    value = record.get("progress")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DetectionError(f"Invalid progress: {value!r}")
    return float(value)


def detect_torrents(snapshot: Snapshot, cursor: dict[str, Any]) -> DetectionResult:
    service = snapshot.service
    previous: dict[str, dict[str, Any]] = dict(cursor.get("torrents") or {})
    current: dict[str, dict[str, Any]] = {}
    events: list[DetectedEvent] = []
    unreadable = 0

    def handle(raw: Any) -> None:
        nonlocal unreadable
        try:
            record = require_dict(raw)
            torrent_hash = require_str(record, "hash").lower()
        except DetectionError:
            unreadable += 1
            raise

        if torrent_hash in current:
            return

        try:
            progress = _progress(record)
        except DetectionError:
            # Known hash, unreadable state: carry the old entry so the
            # torrent is neither re-added nor reported deleted.
            if torrent_hash in previous:
                current[torrent_hash] = previous[torrent_hash]
            raise

        name = optional_str(record, "name") or torrent_hash
        old = previous.get(torrent_hash)
        done = progress >= 1.0
        metadata = {"hash": torrent_hash, "url": TORRENTS_URL}

        event = None
        if old is None:
            event = DetectedEvent(
                event_kind=EventKind.TORRENT_ADDED,
                source_service=service,
                subject_id=torrent_hash,
                title=name,
                occurred_at=epoch_to_datetime(record.get("added_on"))
                or snapshot.fetched_at,
                metadata=metadata,
            )
            completed = done
        else:
            completed = bool(old.get("completed"))
            if done and not completed:
                event = DetectedEvent(
                    event_kind=EventKind.TORRENT_COMPLETED,
                    source_service=service,
                    subject_id=torrent_hash,
                    title=name,
                    occurred_at=epoch_to_datetime(record.get("completion_on"))
                    or snapshot.fetched_at,
                    metadata=metadata,
                )
                completed = True

        current[torrent_hash] = {
            "name": name,
            "progress": progress,
            "completed": completed,
        }
        if event is not None:
            events.append(event)

    skipped = scan(snapshot.get("torrents"), service, "torrent", handle)

    for torrent_hash, old in previous.items():
        if torrent_hash in current:
            continue
        if unreadable:
            # Cannot tell a deleted torrent from one whose record was
            # unreadable; keep it and decide next cycle.
            current[torrent_hash] = old
            continue
        events.append(
            DetectedEvent(
                event_kind=EventKind.TORRENT_DELETED,
                source_service=service,
                subject_id=torrent_hash,
                title=old.get("name") or torrent_hash,
                occurred_at=snapshot.fetched_at,
                metadata={"hash": torrent_hash, "url": TORRENTS_URL},
            )
        )

    next_cursor = dict(cursor)
    next_cursor["torrents"] = current
    return DetectionResult(events=events, cursor=next_cursor, skipped=skipped)
