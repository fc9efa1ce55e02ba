"""Jellyfin client."""

from __future__ import annotations

from typing import Any

import requests

from helprr.schemas.events import ServiceKind
from helprr.services.clients.base import DEFAULT_TIMEOUT, HTTPClient

CLIENT_NAME = "Helprr"
DEVICE_NAME = "Helprr Poller"
DEVICE_ID = "helprr-poller"
CLIENT_VERSION = "1.0.0"


class JellyfinClient(HTTPClient):
    service = ServiceKind.JELLYFIN

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(url, timeout=timeout, session=session)
        self.api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": (
                f'MediaBrowser Token="{self.api_key}", Client="{CLIENT_NAME}", '
                f'Device="{DEVICE_NAME}", DeviceId="{DEVICE_ID}", '
                f'Version="{CLIENT_VERSION}"'
            ),
            "X-Emby-Token": self.api_key,
        }

    def get_activity_log(self, limit: int = 50) -> list[Any]:
        data = self._get_json(
            "/System/ActivityLog/Entries",
            {"startIndex": 0, "limit": limit},
        )
        return self._expect_list(data, "Items")

    def get_active_sessions(self) -> list[Any]:
        """Sessions that are currently playing something."""
        data = self._expect_list(self._get_json("/Sessions"))
        return [s for s in data if isinstance(s, dict) and s.get("NowPlayingItem")]
