"""
Base class for upstream API clients.

Every client the poller talks to (Sonarr, Radarr, qBittorrent, Jellyfin) is
an HTTPClient subclass. The base class owns the requests session, applies a
timeout to every call and turns every failure into a FetchError, so the
scheduler only ever has to handle one exception type for "could not read
this service".

Subclasses define:
    - service: The ServiceKind they talk to
    - _auth_headers(): Headers that authenticate a request (optional)
"""

from __future__ import annotations

from typing import Any

import requests

from helprr.core.exceptions import FetchError
from helprr.core.logging import get_logger
from helprr.schemas.events import ServiceKind

logger = get_logger("clients")

DEFAULT_TIMEOUT = 10.0


class HTTPClient:
    """Base for clients that read JSON from an upstream REST API."""

    service: ServiceKind

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = (url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _auth_headers(self) -> dict[str, str]:
        return {}

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Make a request with the default timeout and auth headers."""
        if not self.url:
            raise FetchError(self.service.value, "Service URL is not configured")

        kwargs.setdefault("timeout", self.timeout)
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}

        try:
            resp = self.session.request(
                method, f"{self.url}{path}", headers=headers, **kwargs
            )
            resp.raise_for_status()
            return resp
        except requests.RequestException as e:
            raise self._handle_error(e) from e

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path and decode the JSON body."""
        resp = self._request("get", path, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(self.service.value, "Invalid JSON response") from e

    def _expect_list(self, data: Any, key: str | None = None) -> list[Any]:
        """
        Return the list carried by a response body.

        With ``key``, a paged object is unwrapped first. Any other shape
        raises FetchError rather than reading as an empty list.
        """
        if key is not None and isinstance(data, dict):
            data = data.get(key)
        if not isinstance(data, list):
            raise FetchError(self.service.value, "Unexpected response shape")
        return data

    def _handle_error(self, e: Exception) -> FetchError:
        """Convert request exceptions to FetchError with a readable message."""
        name = self.service.value
        if isinstance(e, requests.Timeout):
            return FetchError(name, "Connection timed out", status_code=504)
        if isinstance(e, requests.ConnectionError):
            return FetchError(name, "Could not connect to server")
        if isinstance(e, requests.HTTPError) and e.response is not None:
            status = e.response.status_code
            if status in (401, 403):
                return FetchError(name, "Invalid credentials", status_code=status)
            if status == 404:
                return FetchError(name, "Endpoint not found", status_code=404)
            return FetchError(name, f"HTTP error: {status}")
        return FetchError(name, str(e) or e.__class__.__name__)

    def close(self) -> None:
        self.session.close()
