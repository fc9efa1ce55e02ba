"""Tests for the snapshot fetcher."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from helprr.core.exceptions import FetchError
from helprr.schemas.events import ServiceKind, UpcomingPolicy
from helprr.services.clients import SonarrClient
from helprr.services.fetcher import SnapshotFetcher

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def fetcher():
    return SnapshotFetcher(clock=lambda: NOW)


class TestSnapshotFetcher:
    """Tests for SnapshotFetcher.fetch."""

    def test_arr_snapshot(self, fetcher):
        """Should collect queue, history, health and calendar."""
        client = MagicMock()
        client.get_queue.return_value = [{"id": 1}]
        client.get_history.return_value = [{"id": 42}]
        client.get_health.return_value = []
        client.get_calendar.return_value = [{"id": 5}]

        snapshot = fetcher.fetch(ServiceKind.SONARR, client, lookahead_hours=48)

        assert snapshot.service == ServiceKind.SONARR
        assert snapshot.fetched_at == NOW
        assert snapshot.lookahead_hours == 48
        assert snapshot.get("history") == [{"id": 42}]
        assert snapshot.get("queue") == [{"id": 1}]
        assert snapshot.get("calendar") == [{"id": 5}]
        client.get_calendar.assert_called_once_with(NOW, NOW + timedelta(hours=48))
        client.get_history.assert_called_once_with(page_size=50)
        client.get_queue.assert_called_once_with(page_size=100)

    def test_qbittorrent_snapshot(self, fetcher):
        client = MagicMock()
        client.get_torrents.return_value = [{"hash": "abc", "progress": 0.4}]

        snapshot = fetcher.fetch(ServiceKind.QBITTORRENT, client)

        assert snapshot.get("torrents") == [{"hash": "abc", "progress": 0.4}]

    def test_jellyfin_snapshot(self, fetcher):
        client = MagicMock()
        client.get_activity_log.return_value = [{"Id": 1}]
        client.get_active_sessions.return_value = []

        snapshot = fetcher.fetch(ServiceKind.JELLYFIN, client)

        assert snapshot.get("activity") == [{"Id": 1}]
        assert snapshot.get("sessions") == []
        client.get_activity_log.assert_called_once_with(limit=50)

    def test_missing_section_is_empty(self, fetcher):
        client = MagicMock()
        client.get_torrents.return_value = []

        snapshot = fetcher.fetch(ServiceKind.QBITTORRENT, client)

        assert snapshot.get("history") == []

    def test_fetch_error_propagates(self, fetcher):
        """Should not swallow a FetchError or return a partial snapshot."""
        client = MagicMock()
        client.get_queue.return_value = []
        client.get_history.side_effect = FetchError("radarr", "HTTP error: 500")

        with pytest.raises(FetchError, match="HTTP error: 500"):
            fetcher.fetch(ServiceKind.RADARR, client)

    def test_unexpected_error_wrapped(self, fetcher):
        """Should convert unexpected client failures to FetchError."""
        client = MagicMock()
        client.get_torrents.side_effect = KeyError("boom")

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch(ServiceKind.QBITTORRENT, client)

        assert exc_info.value.service == "qbittorrent"

    def test_wrong_shape_fails_whole_fetch(self, fetcher):
        """Should fail instead of reading an error object as "no health issues"."""
        responses = []
        for body in ({"records": []}, {"records": []}, {"message": "x"}):
            resp = MagicMock()
            resp.json.return_value = body
            responses.append(resp)
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = responses
        client = SonarrClient("http://sonarr:8989", "key", session=session)

        with pytest.raises(FetchError, match="Unexpected response shape"):
            fetcher.fetch(ServiceKind.SONARR, client)

    def test_upcoming_policy_carried_on_snapshot(self, fetcher):
        client = MagicMock()
        client.get_queue.return_value = []
        client.get_history.return_value = []
        client.get_health.return_value = []
        client.get_calendar.return_value = []
        policy = UpcomingPolicy(notify_before_mins=15)

        snapshot = fetcher.fetch(ServiceKind.SONARR, client, 24, policy)

        assert snapshot.upcoming == policy
        assert fetcher.fetch(ServiceKind.SONARR, client).upcoming == UpcomingPolicy()
