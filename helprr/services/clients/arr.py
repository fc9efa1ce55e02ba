"""Sonarr and Radarr clients. Both expose the same v3 API surface."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import requests

from helprr.schemas.events import ServiceKind
from helprr.services.clients.base import DEFAULT_TIMEOUT, HTTPClient


class ArrClient(HTTPClient):
    """Read-only client for the *arr v3 API."""

    calendar_params: dict[str, Any] = {}

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
        return {"X-Api-Key": self.api_key}

    def get_queue(self, page: int = 1, page_size: int = 100) -> list[Any]:
        data = self._get_json(
            "/api/v3/queue",
            {"page": page, "pageSize": page_size},
        )
        return self._expect_list(data, "records")

    def get_history(self, page: int = 1, page_size: int = 50) -> list[Any]:
        data = self._get_json(
            "/api/v3/history",
            {
                "page": page,
                "pageSize": page_size,
                "sortKey": "date",
                "sortDirection": "descending",
            },
        )
        return self._expect_list(data, "records")

    def get_health(self) -> list[Any]:
        return self._expect_list(self._get_json("/api/v3/health"))

    def get_calendar(self, start: datetime, end: datetime) -> list[Any]:
        params = {
            "start": start.isoformat(),
            "end": end.isoformat(),
            **self.calendar_params,
        }
        return self._expect_list(self._get_json("/api/v3/calendar", params))


class SonarrClient(ArrClient):
    service = ServiceKind.SONARR
    calendar_params = {"includeSeries": "true"}


class RadarrClient(ArrClient):
    service = ServiceKind.RADARR

