"""Record parsing helpers shared by the per-service detectors."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from helprr.core.exceptions import DetectionError
from helprr.core.logging import get_logger
from helprr.schemas.events import ServiceKind

logger = get_logger("detection")

# Seen-id logs keep the newest entries only. Upstream pages hold 50 records,
# so anything older has long left the page and cannot reappear.
MAX_SEEN_IDS = 1000


def require_dict(record: Any) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise DetectionError(f"Expected an object, got {type(record).__name__}")
    return record


def require_id(record: dict[str, Any], key: str = "id") -> str:
    """Return a record's identifier as a string."""
    value = record.get(key)
    if isinstance(value, bool) or value is None:
        raise DetectionError(f"Missing {key}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise DetectionError(f"Invalid {key}: {value!r}")


def require_str(record: dict[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value.strip():
        raise DetectionError(f"Missing {key}")
    return value


def optional_str(record: dict[str, Any], key: str) -> str | None:
    value = record.get(key)
    return value if isinstance(value, str) and value else None


def epoch_to_datetime(value: Any) -> datetime | None:
    """qBittorrent reports times as epoch seconds; -1 or 0 mean unset."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    return datetime.fromtimestamp(value, UTC)


def scan(
    records: Iterable[Any],
    service: ServiceKind,
    section: str,
    handler: Callable[[Any], None],
) -> int:
    """
    Apply ``handler`` to every record, skipping the ones that fail.

    A handler must not mutate shared state until it has finished parsing,
    so a record that raises leaves no partial effect behind.

    Returns:
        Number of records skipped.
    """
    skipped = 0
    for record in records:
        try:
            handler(record)
        except Exception as e:
            skipped += 1
            logger.warning(
                "Skipping malformed %s %s record: %s", service.value, section, e
            )
    return skipped
