"""Tests for GOStopTracker, the feed client and helpers."""

import os
import unittest
from unittest.mock import patch, MagicMock
from datetime import datetime
import sys
from pathlib import Path

import requests

# Add src to path so we can import gotrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from gotrack.config import Settings
from gotrack.errors import DecodeError, InvalidEndpoint, TransportError
from gotrack.feed_client import GOTransitClient, build_feed_url, trip_updates_url
from gotrack.formatting import (
    delay_text,
    direction_label,
    format_time,
    minutes_since,
    minutes_until,
    schedule_relationship_text,
)
from gotrack.models import Direction, ScheduleRelationship
from gotrack.refresh import RefreshGuard, RefreshState, request_refresh
from gotrack.stop_tracker import GOStopTracker

from feed_fixtures import feed_json, stop_time, trip_entity


def mock_client(payload=None, error=None):
    client = MagicMock(spec=GOTransitClient)
    client.feed_format = "json"
    if error is not None:
        client.fetch_feed.side_effect = error
    else:
        client.fetch_feed.return_value = payload
    return client


SAMPLE_FEED = feed_json(
    trip_entity(
        "1",
        trip_id="LW-1",
        route_id="LW",
        direction_id=0,
        stops=[stop_time("OA", departure=1100), stop_time("UN", departure=1200)],
        vehicle_label="LW - Union Station",
    ),
    trip_entity(
        "2",
        trip_id="LW-2",
        route_id="LW",
        direction_id=1,
        stops=[stop_time("UN", departure=1030), stop_time("OA", departure=1900)],
        delay=180,
        vehicle_label="LW - Aldershot GO",
    ),
    trip_entity(
        "3",
        trip_id="ST-1",
        route_id="ST",
        stops=[stop_time("UN", departure=1100)],
    ),
)


class TestGOTransitClient(unittest.TestCase):
    """Test HTTP fetching of the feed."""

    def test_build_feed_url_appends_key(self):
        url = build_feed_url("https://example.com/feed", "abc123")
        self.assertEqual(url, "https://example.com/feed?key=abc123")

    def test_build_feed_url_replaces_existing_key(self):
        url = build_feed_url("https://example.com/feed?key=old&x=1", "new")
        self.assertEqual(url, "https://example.com/feed?x=1&key=new")

    def test_build_feed_url_without_key(self):
        self.assertEqual(build_feed_url("https://example.com/feed"), "https://example.com/feed")

    def test_invalid_url_raises(self):
        for bad in ["", "not a url", "ftp://example.com/feed", "https://"]:
            with self.assertRaises(InvalidEndpoint):
                build_feed_url(bad)

    def test_malformed_url_raises_invalid_endpoint(self):
        for bad in ["http://[oops/feed", "https://example.com:99999/feed", "https://example.com:port/feed"]:
            with self.assertRaises(InvalidEndpoint):
                build_feed_url(bad, "abc123")

    def test_default_urls(self):
        self.assertTrue(trip_updates_url("json").endswith("/Gtfs/Feed/TripUpdates"))
        self.assertTrue(trip_updates_url("protobuf").endswith("/Gtfs.proto/Feed/TripUpdates"))

    def test_unsupported_format_raises(self):
        with self.assertRaises(InvalidEndpoint):
            GOTransitClient(feed_format="xml", session=MagicMock())

    def test_fetch_returns_content(self):
        session = MagicMock()
        response = MagicMock(status_code=200, content=b'{"header": {}, "entity": []}')
        session.get.return_value = response

        client = GOTransitClient(feed_url="https://example.com/feed", api_key="k", session=session)
        data = client.fetch_feed()

        self.assertEqual(data, b'{"header": {}, "entity": []}')
        session.get.assert_called_once_with(
            "https://example.com/feed?key=k",
            headers={"Accept": "application/json"},
            timeout=client.timeout,
        )

    def test_connection_error_raises_transport_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("Name or service not known")

        client = GOTransitClient(feed_url="https://example.com/feed", session=session)
        with self.assertRaises(TransportError):
            client.fetch_feed()

    def test_timeout_raises_transport_error(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("timed out")

        client = GOTransitClient(feed_url="https://example.com/feed", session=session)
        with self.assertRaises(TransportError):
            client.fetch_feed()

    def test_http_error_raises_transport_error(self):
        session = MagicMock()
        response = MagicMock(status_code=503)
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        session.get.return_value = response

        client = GOTransitClient(feed_url="https://example.com/feed", session=session)
        with self.assertRaises(TransportError):
            client.fetch_feed()

    def test_redacted_url_hides_key(self):
        client = GOTransitClient(feed_url="https://example.com/feed", api_key="secret", session=MagicMock())
        self.assertNotIn("secret", client._redacted_url())

    def test_context_manager_closes_session(self):
        session = MagicMock()
        with GOTransitClient(feed_url="https://example.com/feed", session=session):
            pass
        session.close.assert_called_once()


class TestSettings(unittest.TestCase):
    """Test environment configuration."""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = Settings.from_env()
        self.assertIsNone(settings.api_key)
        self.assertIsNone(settings.feed_url)
        self.assertEqual(settings.feed_format, "json")
        self.assertEqual(settings.timeout, 10)

    @patch.dict(
        os.environ,
        {
            "GOTRACK_API_KEY": "abc",
            "GOTRACK_FEED_FORMAT": "Protobuf",
            "GOTRACK_TIMEOUT": "2.5",
        },
        clear=True,
    )
    def test_reads_environment(self):
        settings = Settings.from_env()
        self.assertEqual(settings.api_key, "abc")
        self.assertEqual(settings.feed_format, "protobuf")
        self.assertEqual(settings.timeout, 2.5)

    @patch.dict(os.environ, {"GOTRACK_FEED_FORMAT": "xml"}, clear=True)
    def test_rejects_unknown_format(self):
        with self.assertRaises(ValueError):
            Settings.from_env()


class TestGOStopTracker(unittest.TestCase):
    """Test the main GOStopTracker class."""

    def setUp(self):
        self.client = mock_client(SAMPLE_FEED)
        self.tracker = GOStopTracker(client=self.client, clock=lambda: 1000.0)

    def test_get_upcoming_trips_sorted(self):
        trips = self.tracker.get_upcoming_trips("UN")
        self.assertEqual([t.trip_id for t in trips], ["LW-2", "ST-1", "LW-1"])

    def test_get_upcoming_trips_by_direction(self):
        inbound = self.tracker.get_upcoming_trips("UN", Direction.INBOUND)
        outbound = self.tracker.get_upcoming_trips("UN", Direction.OUTBOUND)
        self.assertEqual([t.trip_id for t in inbound], ["LW-1"])
        self.assertEqual([t.trip_id for t in outbound], ["LW-2"])
        self.assertEqual(outbound[0].vehicle_label, "LW - Aldershot GO")
        self.assertEqual(outbound[0].delay_seconds, 180)

    def test_every_poll_fetches_again(self):
        self.tracker.get_upcoming_trips("UN")
        self.tracker.get_upcoming_trips("OA")
        self.assertEqual(self.client.fetch_feed.call_count, 2)

    def test_empty_stop_id_raises(self):
        with self.assertRaises(ValueError):
            self.tracker.get_upcoming_trips("  ")

    def test_stop_board(self):
        board = self.tracker.get_stop_board("UN", Direction.ALL)
        self.assertTrue(board.ok)
        self.assertEqual(board.stop_id, "UN")
        self.assertEqual(len(board.trips), 3)
        self.assertEqual(board.last_fetch_time, datetime.fromtimestamp(1000.0))

    @patch("gotrack.stop_tracker.filter_trips_for_stop")
    def test_transport_error_returns_empty(self, mock_filter):
        tracker = GOStopTracker(client=mock_client(error=TransportError("connection refused")))

        self.assertEqual(tracker.get_upcoming_trips("UN"), [])
        self.assertFalse(tracker.get_stop_board("UN").ok)
        mock_filter.assert_not_called()

    def test_decode_error_returns_empty(self):
        tracker = GOStopTracker(client=mock_client(b"<html>Bad Gateway</html>"))
        self.assertEqual(tracker.get_upcoming_trips("UN"), [])

    def test_decode_error_from_client_returns_empty(self):
        tracker = GOStopTracker(client=mock_client(error=DecodeError("bad payload")))
        self.assertEqual(tracker.get_upcoming_trips("UN"), [])

    @patch.dict(os.environ, {"GOTRACK_FEED_URL": "not a url"}, clear=True)
    def test_invalid_endpoint_returns_empty(self):
        tracker = GOStopTracker()
        board = tracker.get_stop_board("UN")
        self.assertFalse(board.ok)
        self.assertEqual(board.trips, [])

    @patch.dict(os.environ, {"GOTRACK_FEED_URL": "http://[oops/feed"}, clear=True)
    def test_malformed_endpoint_returns_empty(self):
        tracker = GOStopTracker()
        self.assertEqual(tracker.get_upcoming_trips("UN"), [])
        self.assertEqual(tracker.list_stop_ids(), [])

    def test_invalid_settings_return_empty(self):
        for env in [{"GOTRACK_FEED_FORMAT": "xml"}, {"GOTRACK_TIMEOUT": "soon"}]:
            with patch.dict(os.environ, env, clear=True):
                tracker = GOStopTracker(clock=lambda: 1000.0)
                self.assertEqual(tracker.get_upcoming_trips("UN"), [])
                timeline = tracker.build_timeline("UN")
                self.assertEqual(len(timeline), 1)
                self.assertEqual(timeline[0].trips, [])

    def test_deeply_nested_payload_returns_empty(self):
        tracker = GOStopTracker(client=mock_client(b"[" * 200000 + b"]" * 200000))
        self.assertEqual(tracker.get_upcoming_trips("UN"), [])

    def test_favorite_stop(self):
        self.assertEqual(self.tracker.get_favorite_upcoming(), [])
        self.client.fetch_feed.assert_not_called()

        self.tracker.favorite_stop = "UN"
        trips = self.tracker.get_favorite_upcoming(limit=2)
        self.assertEqual([t.trip_id for t in trips], ["LW-2", "ST-1"])

    def test_favorite_stop_from_constructor(self):
        tracker = GOStopTracker(client=self.client, favorite_stop=" OA ")
        self.assertEqual(tracker.favorite_stop, "OA")

    def test_build_timeline(self):
        timeline = self.tracker.build_timeline("UN")

        self.assertEqual(len(timeline), 30)
        self.assertEqual(timeline[0].date, datetime.fromtimestamp(1000.0))
        self.assertEqual(timeline[1].date, datetime.fromtimestamp(1060.0))
        self.assertEqual([t.trip_id for t in timeline[0].trips], ["LW-2", "ST-1", "LW-1"])
        self.assertEqual([t.trip_id for t in timeline[1].trips], ["ST-1", "LW-1"])
        self.assertEqual([t.trip_id for t in timeline[2].trips], ["LW-1"])
        self.assertEqual(timeline[4].trips, [])
        self.assertEqual(self.client.fetch_feed.call_count, 1)
        for entry in timeline:
            self.assertEqual(entry.last_fetch_time, timeline[0].last_fetch_time)

    def test_build_timeline_on_failure(self):
        tracker = GOStopTracker(client=mock_client(error=TransportError("down")), clock=lambda: 1000.0)
        timeline = tracker.build_timeline("UN", Direction.INBOUND)
        self.assertEqual(len(timeline), 1)
        self.assertEqual(timeline[0].trips, [])
        self.assertEqual(timeline[0].direction, Direction.INBOUND)

    def test_list_stop_ids(self):
        self.assertEqual(self.tracker.list_stop_ids(), ["OA", "UN"])

    def test_list_stop_ids_on_failure(self):
        tracker = GOStopTracker(client=mock_client(error=TransportError("down")))
        self.assertEqual(tracker.list_stop_ids(), [])

    def test_cleanup_closes_client(self):
        self.tracker.cleanup()
        self.client.close.assert_called_once()


class TestRefreshGuard(unittest.TestCase):
    """Test rate limiting of manual refreshes."""

    def setUp(self):
        self.now = 1000.0
        self.guard = RefreshGuard(min_interval=60, clock=lambda: self.now)

    def test_first_refresh_allowed(self):
        self.assertTrue(self.guard.try_acquire())
        self.assertEqual(self.guard.state.last_refresh, 1000.0)

    def test_refresh_within_interval_rejected(self):
        self.assertTrue(self.guard.try_acquire())
        self.now = 1059.0
        self.assertFalse(self.guard.try_acquire())
        self.assertEqual(self.guard.seconds_until_allowed(), 1.0)
        # Rejected requests do not move the window
        self.assertEqual(self.guard.state.last_refresh, 1000.0)

    def test_refresh_after_interval_allowed(self):
        self.assertTrue(self.guard.try_acquire())
        self.now = 1060.0
        self.assertTrue(self.guard.try_acquire())

    def test_state_is_shared_explicitly(self):
        state = RefreshState()
        first = RefreshGuard(clock=lambda: 500.0, state=state)
        second = RefreshGuard(clock=lambda: 530.0, state=state)
        self.assertTrue(first.try_acquire())
        self.assertFalse(second.try_acquire())
        self.assertTrue(RefreshGuard(clock=lambda: 530.0).try_acquire())

    def test_request_refresh_runs_action_once(self):
        action = MagicMock()
        self.assertTrue(request_refresh(self.guard, action))
        self.assertFalse(request_refresh(self.guard, action))
        action.assert_called_once()


class TestFormatting(unittest.TestCase):
    """Test display helpers."""

    def test_format_time_missing(self):
        self.assertEqual(format_time(0), "--")
        self.assertEqual(format_time(None), "--")
        self.assertEqual(format_time(-5), "--")

    def test_format_time(self):
        text = format_time(1700000000)
        self.assertNotEqual(text, "--")
        self.assertFalse(text.startswith("0"))

    def test_minutes_until(self):
        self.assertEqual(minutes_until(1600, 1000), 10)
        self.assertEqual(minutes_until(1059, 1000), 0)
        self.assertEqual(minutes_until(500, 1000), 0)

    def test_minutes_since(self):
        then = datetime(2025, 1, 1, 12, 0)
        self.assertEqual(minutes_since(then, datetime(2025, 1, 1, 12, 5, 30)), 5)
        self.assertEqual(minutes_since(then, datetime(2025, 1, 1, 11, 0)), 0)

    def test_delay_text_converts_seconds(self):
        self.assertEqual(delay_text(90), "Delay: 2 min")
        self.assertEqual(delay_text(60), "Delay: 1 min")
        self.assertEqual(delay_text(0), "")
        self.assertEqual(delay_text(-30), "")
        self.assertEqual(delay_text(None), "")

    def test_direction_label(self):
        self.assertEqual(direction_label(Direction.ALL), "All Directions")
        self.assertEqual(direction_label(Direction.INBOUND), "Inbound Only")
        self.assertEqual(direction_label(Direction.OUTBOUND), "Outbound Only")

    def test_direction_parse(self):
        self.assertIs(Direction.parse("inbound"), Direction.INBOUND)
        self.assertIs(Direction.parse("OUTBOUND"), Direction.OUTBOUND)
        self.assertIs(Direction.parse("All"), Direction.ALL)
        with self.assertRaises(ValueError):
            Direction.parse("north")

    def test_schedule_relationship_text(self):
        self.assertEqual(schedule_relationship_text(ScheduleRelationship.parse("SKIPPED")), "Skipped")
        self.assertEqual(schedule_relationship_text(ScheduleRelationship.parse("SCHEDULED")), "Scheduled")
        self.assertEqual(schedule_relationship_text(ScheduleRelationship.parse("no_data")), "No Data")
        self.assertEqual(schedule_relationship_text(None), "")


if __name__ == "__main__":
    unittest.main()
