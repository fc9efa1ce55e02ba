"""Tests for Sonarr/Radarr event detection."""

import copy
from datetime import UTC, datetime

from helprr.schemas.events import (
    EventKind,
    ServiceKind,
    UpcomingNotifyMode,
    UpcomingPolicy,
)
from helprr.services.detection import detect
from helprr.services.detection.common import MAX_SEEN_IDS


def _history(history_id, event_type="grabbed", **extra):
    record = {
        "id": history_id,
        "eventType": event_type,
        "sourceTitle": f"Show.S01E{history_id:02d}.1080p" if isinstance(history_id, int) else "Show",
        "date": "2024-06-01T11:59:00Z",
    }
    record.update(extra)
    return record


class TestHistoryDetection:
    """Tests for history-based events."""

    def test_new_history_record_fires_once(self, make_snapshot):
        """Should emit exactly one event for an unseen history id."""
        cursor = {"history_ids": ["40", "41"]}
        snapshot = make_snapshot(
            history=[_history(42, seriesId=7, downloadId="ABC"), _history(41), _history(40)]
        )

        result = detect(snapshot, cursor)

        assert len(result.events) == 1
        event = result.events[0]
        assert event.event_kind == EventKind.GRABBED
        assert event.source_service == ServiceKind.SONARR
        assert event.subject_id == "42"
        assert event.title == "Show.S01E42.1080p"
        assert event.occurred_at == datetime(2024, 6, 1, 11, 59, tzinfo=UTC)
        assert event.metadata["url"] == "/series/7"
        assert event.metadata["download_id"] == "ABC"
        assert event.tag == "grabbed:sonarr:42"
        assert "42" in result.cursor["history_ids"]

    def test_unchanged_snapshot_yields_no_events(self, make_snapshot):
        """Should not emit duplicates when re-run against its own cursor."""
        snapshot = make_snapshot(history=[_history(42), _history(41)])

        first = detect(snapshot, {})
        second = detect(snapshot, first.cursor)

        assert len(first.events) == 2
        assert second.events == []
        assert second.cursor == first.cursor

    def test_missing_cursor_treated_as_empty(self, make_snapshot):
        result = detect(make_snapshot(history=[_history(1)]), None)

        assert [e.subject_id for e in result.events] == ["1"]

    def test_event_type_mapping(self, make_snapshot):
        """Should map every import variant to imported and failures to their kinds."""
        snapshot = make_snapshot(
            service=ServiceKind.RADARR,
            history=[
                _history(1, "grabbed"),
                _history(2, "movieFileImported"),
                _history(3, "downloadFolderImported"),
                _history(4, "downloadFailed"),
                _history(5, "importFailed"),
            ],
        )

        result = detect(snapshot, {})

        assert [e.event_kind for e in result.events] == [
            EventKind.GRABBED,
            EventKind.IMPORTED,
            EventKind.IMPORTED,
            EventKind.DOWNLOAD_FAILED,
            EventKind.IMPORT_FAILED,
        ]

    def test_ignored_types_marked_seen(self, make_snapshot):
        """Should remember unmapped history types without emitting."""
        result = detect(make_snapshot(history=[_history(9, "downloadIgnored")]), {})

        assert result.events == []
        assert result.cursor["history_ids"] == ["9"]

    def test_keyed_by_id_not_position(self, make_snapshot):
        """Should ignore reordering of already-seen records."""
        cursor = {"history_ids": ["1", "2", "3"]}
        snapshot = make_snapshot(history=[_history(2), _history(3), _history(1)])

        assert detect(snapshot, cursor).events == []

    def test_events_in_snapshot_order(self, make_snapshot):
        snapshot = make_snapshot(history=[_history(12), _history(11), _history(10)])

        result = detect(snapshot, {})

        assert [e.subject_id for e in result.events] == ["12", "11", "10"]

    def test_malformed_record_is_isolated(self, make_snapshot):
        """Should skip a bad record and still process the rest."""
        snapshot = make_snapshot(
            history=[
                {"eventType": "grabbed"},
                "not an object",
                _history(43, date="yesterday"),
                _history(44),
            ]
        )

        result = detect(snapshot, {"history_ids": ["40"]})

        assert [e.subject_id for e in result.events] == ["44"]
        assert result.skipped == 3
        assert result.cursor["history_ids"] == ["40", "44"]

    def test_seen_ids_are_bounded(self, make_snapshot):
        cursor = {"history_ids": [str(i) for i in range(MAX_SEEN_IDS)]}

        result = detect(make_snapshot(history=[_history(MAX_SEEN_IDS)]), cursor)

        assert len(result.cursor["history_ids"]) == MAX_SEEN_IDS
        assert result.cursor["history_ids"][-1] == str(MAX_SEEN_IDS)
        assert "0" not in result.cursor["history_ids"]


class TestDetectorPurity:
    """The detector must be a pure function of its inputs."""

    def test_does_not_mutate_cursor(self, make_snapshot):
        cursor = {
            "history_ids": ["1"],
            "queue": {"5": "ok"},
            "health": [],
            "upcoming": {},
        }
        original = copy.deepcopy(cursor)
        snapshot = make_snapshot(
            history=[_history(2)],
            queue=[{"id": 5, "trackedDownloadStatus": "warning", "title": "Show"}],
        )

        detect(snapshot, cursor)

        assert cursor == original

    def test_same_input_same_output(self, make_snapshot):
        cursor = {"history_ids": ["1"]}
        snapshot = make_snapshot(history=[_history(3), _history(2), _history(1)])

        assert detect(snapshot, cursor) == detect(snapshot, cursor)


class TestQueueDetection:
    """Tests for queue status transitions."""

    def test_fires_on_transition_into_failure(self, make_snapshot):
        snapshot = make_snapshot(
            queue=[
                {
                    "id": 5,
                    "title": "Show.S01E01",
                    "trackedDownloadStatus": "warning",
                    "statusMessages": [{"title": "Stalled"}],
                    "seriesId": 7,
                }
            ]
        )

        result = detect(snapshot, {"queue": {"5": "ok"}})

        assert len(result.events) == 1
        event = result.events[0]
        assert event.event_kind == EventKind.DOWNLOAD_FAILED
        assert event.subject_id == "queue-5"
        assert event.metadata["messages"] == ["Stalled"]
        assert result.cursor["queue"] == {"5": "downloadFailed"}

    def test_import_blocked_is_import_failed(self, make_snapshot):
        snapshot = make_snapshot(
            queue=[{"id": 6, "title": "Movie", "trackedDownloadState": "importBlocked"}]
        )

        result = detect(snapshot, {})

        assert result.events[0].event_kind == EventKind.IMPORT_FAILED

    def test_persisting_failure_does_not_refire(self, make_snapshot):
        snapshot = make_snapshot(queue=[{"id": 5, "trackedDownloadStatus": "error"}])

        first = detect(snapshot, {})
        second = detect(snapshot, first.cursor)

        assert len(first.events) == 1
        assert second.events == []

    def test_recovered_then_failed_fires_again(self, make_snapshot):
        failing = make_snapshot(queue=[{"id": 5, "trackedDownloadStatus": "warning"}])
        healthy = make_snapshot(queue=[{"id": 5, "trackedDownloadStatus": "ok"}])

        first = detect(failing, {})
        recovered = detect(healthy, first.cursor)
        again = detect(failing, recovered.cursor)

        assert recovered.events == []
        assert len(again.events) == 1

    def test_malformed_status_keeps_previous_state(self, make_snapshot):
        """Should not refire an unchanged failure after one unreadable cycle."""
        failing = make_snapshot(queue=[{"id": 5, "trackedDownloadStatus": "warning"}])
        malformed = make_snapshot(
            queue=[{"id": 5, "trackedDownloadStatus": "warning", "trackedDownloadState": 3}]
        )

        first = detect(failing, {})
        second = detect(malformed, first.cursor)
        third = detect(failing, second.cursor)

        assert [len(r.events) for r in (first, second, third)] == [1, 0, 0]
        assert second.skipped == 1
        assert second.cursor["queue"] == {"5": "downloadFailed"}

    def test_removed_items_are_forgotten(self, make_snapshot):
        result = detect(make_snapshot(queue=[]), {"queue": {"5": "downloadFailed"}})

        assert result.cursor["queue"] == {}


class TestHealthDetection:
    """Tests for health warning signatures."""

    WARNING = {
        "source": "IndexerStatusCheck",
        "type": "warning",
        "message": "Indexers unavailable due to failures",
        "wikiUrl": "https://wiki.servarr.com/sonarr/system#indexers",
    }

    def test_new_warning_fires(self, make_snapshot):
        result = detect(make_snapshot(health=[self.WARNING]), {})

        assert len(result.events) == 1
        event = result.events[0]
        assert event.event_kind == EventKind.HEALTH_WARNING
        assert event.title == "Indexers unavailable due to failures"
        assert event.metadata["wiki_url"].startswith("https://")
        assert result.cursor["health"] == [event.subject_id]

    def test_persisting_warning_does_not_refire(self, make_snapshot):
        snapshot = make_snapshot(health=[self.WARNING])

        first = detect(snapshot, {})

        assert detect(snapshot, first.cursor).events == []

    def test_cleared_then_reappearing_fires_again(self, make_snapshot):
        present = make_snapshot(health=[self.WARNING])
        cleared = make_snapshot(health=[])

        first = detect(present, {})
        gone = detect(cleared, first.cursor)
        back = detect(present, gone.cursor)

        assert gone.events == []
        assert gone.cursor["health"] == []
        assert len(back.events) == 1

    def test_ok_checks_ignored(self, make_snapshot):
        ok = {"source": "UpdateCheck", "type": "ok", "message": "All good"}

        assert detect(make_snapshot(health=[ok]), {}).events == []

    def test_duplicate_warning_in_snapshot_fires_once(self, make_snapshot):
        result = detect(make_snapshot(health=[self.WARNING, dict(self.WARNING)]), {})

        assert len(result.events) == 1


class TestUpcomingDetection:
    """Tests for upcoming premiere alerts. Snapshots are taken at 12:00 UTC."""

    EPISODE = {
        "id": 100,
        "seriesId": 7,
        "seasonNumber": 1,
        "episodeNumber": 2,
        "title": "Pilot",
        "airDateUtc": "2024-06-01T12:45:00Z",
        "series": {"title": "Show"},
    }

    def test_episode_inside_window_fires(self, make_snapshot):
        result = detect(make_snapshot(calendar=[self.EPISODE]), {})

        assert len(result.events) == 1
        event = result.events[0]
        assert event.event_kind == EventKind.UPCOMING_PREMIERE
        assert event.subject_id == "episode:100"
        assert event.title == "Show S01E02 - Pilot"
        assert event.occurred_at == datetime(2024, 6, 1, 12, 45, tzinfo=UTC)
        assert event.metadata["url"] == "/series/7"
        assert result.cursor["upcoming"] == {"episode:100": "2024-06-01T12:45:00Z"}

    def test_fires_only_once(self, make_snapshot):
        snapshot = make_snapshot(calendar=[self.EPISODE])

        first = detect(snapshot, {})

        assert detect(snapshot, first.cursor).events == []

    def test_outside_window_ignored(self, make_snapshot):
        later = dict(self.EPISODE, airDateUtc="2024-06-03T17:00:00Z")

        result = detect(make_snapshot(calendar=[later]), {})

        assert result.events == []
        assert result.cursor["upcoming"] == {}

    def test_before_air_waits_until_notify_window(self, make_snapshot):
        """Should hold a release inside the lookahead until it is within the notify minutes."""
        evening = dict(self.EPISODE, airDateUtc="2024-06-01T17:00:00Z")

        early = detect(make_snapshot(calendar=[evening]), {})
        close = detect(
            make_snapshot(
                calendar=[evening], fetched_at=datetime(2024, 6, 1, 16, 10, tzinfo=UTC)
            ),
            early.cursor,
        )

        assert early.events == []
        assert [e.subject_id for e in close.events] == ["episode:100"]

    def test_before_air_minutes_configurable(self, make_snapshot):
        evening = dict(self.EPISODE, airDateUtc="2024-06-01T17:00:00Z")
        policy = UpcomingPolicy(notify_before_mins=360)

        result = detect(make_snapshot(calendar=[evening], upcoming=policy), {})

        assert len(result.events) == 1

    def test_before_air_capped_by_lookahead(self, make_snapshot):
        later = dict(self.EPISODE, airDateUtc="2024-06-01T15:00:00Z")
        policy = UpcomingPolicy(notify_before_mins=600)

        result = detect(
            make_snapshot(calendar=[later], upcoming=policy, lookahead_hours=2), {}
        )

        assert result.events == []

    def test_already_aired_ignored(self, make_snapshot):
        aired = dict(self.EPISODE, airDateUtc="2024-06-01T11:30:00Z")

        assert detect(make_snapshot(calendar=[aired]), {}).events == []

    def test_radarr_release_keys(self, make_snapshot):
        """Should key each movie release type separately."""
        movie = {
            "id": 9,
            "title": "Movie",
            "year": 2024,
            "inCinemas": "2024-01-01T00:00:00Z",
            "digitalRelease": "2024-06-01T12:30:00Z",
        }

        result = detect(make_snapshot(service=ServiceKind.RADARR, calendar=[movie]), {})

        assert [e.subject_id for e in result.events] == ["movie:9:digital"]
        assert result.events[0].title == "Movie (2024)"
        assert result.events[0].metadata["url"] == "/movies/9"

    def test_old_keys_expire(self, make_snapshot):
        cursor = {
            "upcoming": {
                "episode:1": "2024-05-01T00:00:00Z",
                "episode:2": "2024-05-30T00:00:00Z",
            }
        }

        result = detect(make_snapshot(calendar=[]), cursor)

        assert result.cursor["upcoming"] == {"episode:2": "2024-05-30T00:00:00Z"}


class TestUpcomingDailyDigest:
    """Tests for the once-a-day upcoming digest. Snapshots are taken at 12:00 UTC."""

    DIGEST = UpcomingPolicy(mode=UpcomingNotifyMode.DAILY_DIGEST, daily_notify_hour=12)

    EPISODE = {
        "id": 100,
        "title": "Pilot",
        "airDateUtc": "2024-06-01T20:00:00Z",
        "series": {"title": "Show"},
    }

    def test_digest_covers_lookahead_window(self, make_snapshot):
        """Should alert everything inside the lookahead at the digest hour."""
        tomorrow = dict(self.EPISODE, id=101, airDateUtc="2024-06-02T09:00:00Z")

        result = detect(
            make_snapshot(calendar=[self.EPISODE, tomorrow], upcoming=self.DIGEST), {}
        )

        assert [e.subject_id for e in result.events] == ["episode:100", "episode:101"]
        assert result.cursor["upcoming_digest_on"] == "2024-06-01"

    def test_lookahead_controls_window(self, make_snapshot):
        later = dict(self.EPISODE, airDateUtc="2024-06-03T17:00:00Z")

        short = detect(make_snapshot(calendar=[later], upcoming=self.DIGEST), {})
        long = detect(
            make_snapshot(calendar=[later], upcoming=self.DIGEST, lookahead_hours=72), {}
        )

        assert short.events == []
        assert len(long.events) == 1

    def test_outside_digest_hour_sends_nothing(self, make_snapshot):
        policy = UpcomingPolicy(mode=UpcomingNotifyMode.DAILY_DIGEST, daily_notify_hour=9)

        result = detect(make_snapshot(calendar=[self.EPISODE], upcoming=policy), {})

        assert result.events == []
        assert result.skipped == 0
        assert "upcoming_digest_on" not in result.cursor

    def test_digest_runs_once_per_day(self, make_snapshot):
        """Should not send a second digest later in the same hour."""
        first = detect(make_snapshot(calendar=[], upcoming=self.DIGEST), {})
        second = detect(
            make_snapshot(
                calendar=[self.EPISODE],
                upcoming=self.DIGEST,
                fetched_at=datetime(2024, 6, 1, 12, 30, tzinfo=UTC),
            ),
            first.cursor,
        )

        assert second.events == []
        assert second.cursor["upcoming_digest_on"] == "2024-06-01"

    def test_next_day_digest_skips_already_alerted(self, make_snapshot):
        first = detect(make_snapshot(calendar=[self.EPISODE], upcoming=self.DIGEST), {})
        tomorrow = dict(self.EPISODE, id=101, airDateUtc="2024-06-02T20:00:00Z")
        next_day = detect(
            make_snapshot(
                calendar=[self.EPISODE, tomorrow],
                upcoming=self.DIGEST,
                fetched_at=datetime(2024, 6, 2, 12, 0, tzinfo=UTC),
            ),
            first.cursor,
        )

        assert [e.subject_id for e in next_day.events] == ["episode:101"]
