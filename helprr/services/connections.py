"""
Service connection lookup.

Connections are stored in the service_connections table. Sensitive values
can also come from the environment, which overrides the database:
    HELPRR_{SERVICE}_URL
    HELPRR_{SERVICE}_API_KEY
    HELPRR_{SERVICE}_USERNAME
e.g., HELPRR_SONARR_API_KEY, HELPRR_QBITTORRENT_USERNAME
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from helprr.core.exceptions import NotFoundError, ValidationError
from helprr.core.logging import get_logger
from helprr.models import ServiceConnection
from helprr.schemas.events import ServiceKind

logger = get_logger("connections")

ENV_FIELDS = ("url", "api_key", "username")


@dataclass(frozen=True)
class ConnectionConfig:
    service: ServiceKind
    url: str
    api_key: str
    username: str | None = None


def _env_overrides(service: ServiceKind) -> dict[str, str]:
    overrides = {}
    for field_name in ENV_FIELDS:
        env_name = f"HELPRR_{service.value.upper()}_{field_name.upper()}"
        env_value = os.environ.get(env_name)
        if env_value:
            overrides[field_name] = env_value
    return overrides


def get_connection(db, service: ServiceKind) -> ConnectionConfig | None:
    """
    Resolve the connection for a service.

    Args:
        db: Database session.
        service: The service to look up.

    Returns:
        The merged connection, or None if the service is not configured.
    """
    row = db.query(ServiceConnection).filter_by(service=service.value).first()
    values = {}
    if row:
        values = {"url": row.url, "api_key": row.api_key, "username": row.username}
    values.update(_env_overrides(service))

    if not values.get("url"):
        return None

    return ConnectionConfig(
        service=service,
        url=values["url"],
        api_key=values.get("api_key") or "",
        username=values.get("username"),
    )


def save_connection(
    db,
    service: ServiceKind,
    url: str,
    api_key: str,
    username: str | None = None,
) -> ServiceConnection:
    """Create or update the stored connection for a service."""
    if not url or not url.strip():
        raise ValidationError("Service URL is required")

    row = db.query(ServiceConnection).filter_by(service=service.value).first()
    if row:
        row.url = url.strip()
        row.api_key = api_key
        row.username = username
    else:
        row = ServiceConnection(
            service=service.value,
            url=url.strip(),
            api_key=api_key,
            username=username,
        )
        db.add(row)
    db.commit()
    logger.info("Saved %s connection", service.value)
    return row


def remove_connection(db, service: ServiceKind, state_store) -> None:
    """
    Delete a service connection together with its polling cursor.

    Args:
        db: Database session.
        service: The service to remove.
        state_store: PollingStateStore that owns the cursor row.

    Raises:
        NotFoundError: If no connection is stored for the service.
    """
    row = db.query(ServiceConnection).filter_by(service=service.value).first()
    if not row:
        raise NotFoundError("ServiceConnection", service.value)

    db.delete(row)
    db.commit()
    state_store.delete(service)
    logger.info("Removed %s connection and its polling cursor", service.value)
