"""
Upstream API clients.

build_client() turns a resolved connection into an authenticated client.
The fetcher only ever receives the client, never the raw credential.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from helprr.schemas.events import ServiceKind
from helprr.services.clients.arr import ArrClient, RadarrClient, SonarrClient
from helprr.services.clients.base import DEFAULT_TIMEOUT, HTTPClient
from helprr.services.clients.jellyfin import JellyfinClient
from helprr.services.clients.qbittorrent import QBittorrentClient

if TYPE_CHECKING:
    from helprr.services.connections import ConnectionConfig


def build_client(
    connection: ConnectionConfig, timeout: float = DEFAULT_TIMEOUT
) -> HTTPClient:
    """Create the client for a connection's service."""
    service = connection.service
    if service == ServiceKind.SONARR:
        return SonarrClient(connection.url, connection.api_key, timeout=timeout)
    if service == ServiceKind.RADARR:
        return RadarrClient(connection.url, connection.api_key, timeout=timeout)
    if service == ServiceKind.QBITTORRENT:
        return QBittorrentClient(
            connection.url,
            connection.api_key,
            username=connection.username or "admin",
            timeout=timeout,
        )
    if service == ServiceKind.JELLYFIN:
        return JellyfinClient(connection.url, connection.api_key, timeout=timeout)
    raise ValueError(f"Unsupported service: {service}")


__all__ = [
    "ArrClient",
    "HTTPClient",
    "JellyfinClient",
    "QBittorrentClient",
    "RadarrClient",
    "SonarrClient",
    "build_client",
]
