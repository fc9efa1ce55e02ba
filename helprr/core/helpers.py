"""Generic helper functions."""

import hashlib
import tomllib
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from helprr.core.exceptions import DetectionError

_pyproject_data: dict | None = None


def _get_pyproject() -> dict:
    """Load and cache pyproject.toml data."""
    global _pyproject_data
    if _pyproject_data is None:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            _pyproject_data = tomllib.load(f)
    return _pyproject_data


def _get_pyproject_attr(key: str, default: str = "unknown") -> str:
    """
    Get an attribute from pyproject.toml [project] section.

    Args:
        key: The attribute name to retrieve.
        default: Default value if attribute not found.

    Returns:
        The attribute value or default.
    """
    try:
        return _get_pyproject()["project"].get(key, default)
    except Exception:
        return default


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


def parse_upstream_datetime(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp as returned by the *arr and Jellyfin APIs.

    Naive values are assumed to be UTC. Jellyfin emits seven fractional
    digits, which are truncated to microseconds.

    Args:
        value: The raw timestamp string.

    Returns:
        A timezone-aware datetime.

    Raises:
        DetectionError: If the value is missing or not a timestamp.
    """
    if not isinstance(value, str) or not value.strip():
        raise DetectionError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6]}{rest}" if digits else f"{head}{rest}"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise DetectionError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def signature(*parts: Any) -> str:
    """
    Build a stable md5 signature from the given parts.

    Used to identify health warnings across polls.
    """
    joined = "|".join("" if p is None else str(p) for p in parts)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()


def bounded_append(items: list, new_items: list, limit: int) -> list:
    """
    Append new items to a list, keeping only the newest ``limit`` entries.

    Args:
        items: Existing items, oldest first.
        new_items: Items to append.
        limit: Maximum number of entries to keep.

    Returns:
        A new list; the inputs are not modified.
    """
    merged = list(items) + list(new_items)
    if limit > 0 and len(merged) > limit:
        merged = merged[-limit:]
    return merged


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret an environment-style boolean string."""
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")
