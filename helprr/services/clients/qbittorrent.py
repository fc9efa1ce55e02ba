"""qBittorrent Web API client."""

from __future__ import annotations

from typing import Any

import requests

from helprr.core.exceptions import FetchError
from helprr.schemas.events import ServiceKind
from helprr.services.clients.base import DEFAULT_TIMEOUT, HTTPClient


class QBittorrentClient(HTTPClient):
    """
    Cookie-authenticated client.

    Logs in lazily on first use and once more if the session cookie has
    expired (HTTP 403).
    """

    service = ServiceKind.QBITTORRENT

    def __init__(
        self,
        url: str,
        password: str,
        username: str = "admin",
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(url, timeout=timeout, session=session)
        self.username = username or "admin"
        self.password = password
        self._logged_in = False

    def _auth_headers(self) -> dict[str, str]:
        # qBittorrent rejects requests whose Referer does not match the host.
        return {"Referer": self.url}

    def login(self) -> None:
        resp = self._request(
            "post",
            "/api/v2/auth/login",
            data={"username": self.username, "password": self.password},
        )
        if resp.text.strip() != "Ok.":
            raise FetchError(self.service.value, "Invalid credentials", status_code=401)
        self._logged_in = True

    def get_torrents(self) -> list[Any]:
        if not self._logged_in:
            self.login()
        try:
            data = self._get_json("/api/v2/torrents/info")
        except FetchError as e:
            if e.status_code != 403:
                raise
            self._logged_in = False
            self.login()
            data = self._get_json("/api/v2/torrents/info")
        return self._expect_list(data)
