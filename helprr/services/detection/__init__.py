"""
Event detector.

detect() is a pure function of (snapshot, cursor): it never mutates the
cursor it is given and returns the same events and next cursor for the same
input. Each service kind maps to one diff strategy in DETECTORS.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from helprr.core.logging import get_logger
from helprr.schemas.events import DetectionResult, ServiceKind, Snapshot
from helprr.services.detection.arr import detect_arr
from helprr.services.detection.jellyfin import detect_jellyfin
from helprr.services.detection.torrents import detect_torrents

logger = get_logger("detection")

DETECTORS: dict[ServiceKind, Callable[[Snapshot, dict[str, Any]], DetectionResult]] = {
    ServiceKind.SONARR: detect_arr,
    ServiceKind.RADARR: detect_arr,
    ServiceKind.QBITTORRENT: detect_torrents,
    ServiceKind.JELLYFIN: detect_jellyfin,
}


def detect(snapshot: Snapshot, cursor: dict[str, Any] | None) -> DetectionResult:
    """
    Diff a fresh snapshot against the stored cursor.

    Args:
        snapshot: Records fetched this cycle.
        cursor: The cursor from the last completed cycle, or None if the
            service has never been polled.

    Returns:
        New events in snapshot order and the cursor to persist.
    """
    strategy = DETECTORS[snapshot.service]
    result = strategy(snapshot, copy.deepcopy(cursor or {}))

    if result.skipped:
        logger.warning(
            "%s: skipped %d malformed record(s)",
            snapshot.service.value,
            result.skipped,
        )
    logger.debug(
        "%s: detected %d event(s)", snapshot.service.value, len(result.events)
    )
    return result


__all__ = ["DETECTORS", "detect"]
