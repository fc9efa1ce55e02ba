"""
Service snapshot fetcher.

Reads the current state of one upstream service in a single pass and wraps
the raw JSON records in a Snapshot. No parsing beyond unwrapping paged
responses happens here; the detector decides what each record means, so a
malformed record never fails the whole fetch.

Any failure (network, credentials, upstream 5xx, bad JSON, a body of the
wrong shape) is raised as FetchError. The scheduler then marks the cycle failed and the detector is
never shown a partial snapshot.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from helprr.core.exceptions import FetchError
from helprr.core.helpers import utc_now
from helprr.core.logging import get_logger
from helprr.schemas.events import ServiceKind, Snapshot, UpcomingPolicy

logger = get_logger("fetcher")

QUEUE_PAGE_SIZE = 100
HISTORY_PAGE_SIZE = 50
ACTIVITY_LIMIT = 50


def _fetch_arr(client, now: datetime, lookahead_hours: int) -> dict[str, list[Any]]:
    return {
        "queue": client.get_queue(page_size=QUEUE_PAGE_SIZE),
        "history": client.get_history(page_size=HISTORY_PAGE_SIZE),
        "health": client.get_health(),
        "calendar": client.get_calendar(now, now + timedelta(hours=lookahead_hours)),
    }


def _fetch_qbittorrent(
    client, now: datetime, lookahead_hours: int
) -> dict[str, list[Any]]:
    return {"torrents": client.get_torrents()}


def _fetch_jellyfin(client, now: datetime, lookahead_hours: int) -> dict[str, list[Any]]:
    return {
        "activity": client.get_activity_log(limit=ACTIVITY_LIMIT),
        "sessions": client.get_active_sessions(),
    }


FETCHERS: dict[ServiceKind, Callable[..., dict[str, list[Any]]]] = {
    ServiceKind.SONARR: _fetch_arr,
    ServiceKind.RADARR: _fetch_arr,
    ServiceKind.QBITTORRENT: _fetch_qbittorrent,
    ServiceKind.JELLYFIN: _fetch_jellyfin,
}


class SnapshotFetcher:
    """Fetches a Snapshot for a service using an authenticated client."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.clock = clock

    def fetch(
        self,
        service: ServiceKind,
        client,
        lookahead_hours: int = 24,
        upcoming: UpcomingPolicy | None = None,
    ) -> Snapshot:
        """
        Retrieve the records relevant to event detection.

        Args:
            service: The service being polled.
            client: Authenticated client for that service.
            lookahead_hours: Calendar window for upcoming releases.
            upcoming: Upcoming alert settings carried to the detector.

        Returns:
            The snapshot, stamped with the time the fetch started.

        Raises:
            FetchError: If any request fails.
        """
        fetch_fn = FETCHERS.get(service)
        if fetch_fn is None:
            raise FetchError(service.value, "No fetcher registered", status_code=500)

        now = self.clock()
        try:
            records = fetch_fn(client, now, lookahead_hours)
        except FetchError:
            raise
        except Exception as e:
            # Client bugs or unexpected payload shapes still mean "no snapshot".
            raise FetchError(service.value, f"Unexpected fetch failure: {e}") from e

        logger.debug(
            "Fetched %s snapshot: %s",
            service.value,
            {name: len(items) for name, items in records.items()},
        )
        return Snapshot(
            service=service,
            fetched_at=now,
            records=records,
            lookahead_hours=lookahead_hours,
            upcoming=upcoming or UpcomingPolicy(),
        )
