"""Main GO Transit stop tracker class."""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from .config import TIMELINE_MINUTES, TIMELINE_STEP_SECONDS, Settings
from .errors import FeedError, InvalidEndpoint
from .feed_client import GOTransitClient
from .feed_decoder import decode_feed
from .models import Direction, StopBoard, TimelineEntry, TripUpdate, UpcomingTrip
from .stop_filter import MissingTimePolicy, filter_trips_for_stop, upcoming_after
from .trip_projector import collect_stop_ids, project_trips

logger = logging.getLogger(__name__)


class GOStopTracker:
    """
    Tracks upcoming GO Transit trips for a stop.

    This class provides methods to:
    - Get upcoming trips at a stop, optionally for one direction
    - Keep a favorite stop and list its next trips
    - Build look-ahead snapshots from a single feed download

    Every poll downloads and decodes the feed from scratch. Feed failures are
    logged and reported as an empty trip list.
    """

    def __init__(
        self,
        client: Optional[GOTransitClient] = None,
        favorite_stop: Optional[str] = None,
        missing_departure: MissingTimePolicy = MissingTimePolicy.FIRST,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the tracker.

        Args:
            client: Feed client. If None, one is built from Settings.from_env()
                on first use, so an invalid endpoint degrades to no data.
            favorite_stop: Optional stop ID to remember as the favorite.
            missing_departure: Placement of trips without a departure time.
            clock: Returns the current Unix time; injectable for tests.
        """
        self._client = client
        self.missing_departure = missing_departure
        self.clock = clock
        self._favorite_stop: Optional[str] = None
        if favorite_stop is not None:
            self.favorite_stop = favorite_stop

    @property
    def client(self) -> GOTransitClient:
        """Feed client, built from the environment on first access."""
        if self._client is None:
            try:
                settings = Settings.from_env()
            except ValueError as e:
                raise InvalidEndpoint(f"Invalid feed settings: {e}") from e
            self._client = GOTransitClient(
                feed_url=settings.feed_url,
                api_key=settings.api_key,
                timeout=settings.timeout,
                feed_format=settings.feed_format,
            )
        return self._client

    @property
    def favorite_stop(self) -> Optional[str]:
        return self._favorite_stop

    @favorite_stop.setter
    def favorite_stop(self, stop_id: Optional[str]) -> None:
        if stop_id is not None:
            stop_id = self._validate_stop_id(stop_id)
        self._favorite_stop = stop_id
        logger.info(f"Favorite stop set to {stop_id}")

    def fetch_trips(self) -> List[TripUpdate]:
        """
        Download, decode and project the current feed.

        Returns:
            List of TripUpdate objects in feed order.

        Raises:
            InvalidEndpoint: If the feed URL is invalid.
            TransportError: If the feed cannot be downloaded.
            DecodeError: If the payload is malformed.
        """
        client = self.client
        data = client.fetch_feed()
        feed = decode_feed(data, client.feed_format)
        return project_trips(feed)

    def get_upcoming_trips(self, stop_id: str, direction: Direction = Direction.ALL) -> List[UpcomingTrip]:
        """
        Get upcoming trips for a stop, sorted by departure time.

        Args:
            stop_id: GO stop code (e.g., "UN").
            direction: INBOUND, OUTBOUND or ALL.

        Returns:
            List of UpcomingTrip objects. Empty if the feed could not be loaded.

        Raises:
            ValueError: If stop_id is empty.
        """
        return self.get_stop_board(stop_id, direction).trips

    def get_stop_board(self, stop_id: str, direction: Direction = Direction.ALL) -> StopBoard:
        """
        Poll the feed once and build the board for a stop.

        Args:
            stop_id: GO stop code.
            direction: INBOUND, OUTBOUND or ALL.

        Returns:
            StopBoard with ``ok`` False when the poll degraded to no data.
        """
        stop_id = self._validate_stop_id(stop_id)
        try:
            trips = self.fetch_trips()
        except FeedError as e:
            logger.warning(f"No data for stop {stop_id}: {e}")
            return StopBoard(
                stop_id=stop_id,
                direction=direction,
                trips=[],
                last_fetch_time=self._now(),
                ok=False,
            )

        fetched_at = self._now()
        upcoming = filter_trips_for_stop(trips, stop_id, direction, self.missing_departure)
        logger.info(f"Found {len(upcoming)} upcoming trips at {stop_id} ({direction.value})")
        return StopBoard(
            stop_id=stop_id,
            direction=direction,
            trips=upcoming,
            last_fetch_time=fetched_at,
        )

    def get_favorite_upcoming(self, limit: Optional[int] = None) -> List[UpcomingTrip]:
        """
        Get upcoming trips for the favorite stop.

        Args:
            limit: Maximum number of trips to return.

        Returns:
            List of UpcomingTrip objects, empty if no favorite stop is set.
        """
        if self.favorite_stop is None:
            return []
        trips = self.get_upcoming_trips(self.favorite_stop)
        return trips[:limit] if limit is not None else trips

    def build_timeline(
        self,
        stop_id: str,
        direction: Direction = Direction.ALL,
        minutes: int = TIMELINE_MINUTES,
        step_seconds: int = TIMELINE_STEP_SECONDS,
    ) -> List[TimelineEntry]:
        """
        Build future snapshots of a stop from a single feed download.

        Each entry keeps only the trips departing at or after the entry time,
        so a display can advance through the list without polling again.

        Args:
            stop_id: GO stop code.
            direction: INBOUND, OUTBOUND or ALL.
            minutes: Number of entries.
            step_seconds: Spacing between entries.

        Returns:
            List of TimelineEntry objects. A single empty entry if the feed
            could not be loaded.
        """
        board = self.get_stop_board(stop_id, direction)
        start = self.clock()

        if not board.ok:
            return [
                TimelineEntry(
                    date=datetime.fromtimestamp(start),
                    stop_id=board.stop_id,
                    direction=direction,
                    trips=[],
                    last_fetch_time=board.last_fetch_time,
                )
            ]

        entries: List[TimelineEntry] = []
        for offset in range(minutes):
            entry_time = start + offset * step_seconds
            entries.append(
                TimelineEntry(
                    date=datetime.fromtimestamp(entry_time),
                    stop_id=board.stop_id,
                    direction=direction,
                    trips=upcoming_after(board.trips, entry_time),
                    last_fetch_time=board.last_fetch_time,
                )
            )
        return entries

    def list_stop_ids(self, exclude_numeric: bool = True) -> List[str]:
        """
        List the stop IDs present in the current feed.

        Args:
            exclude_numeric: Drop numeric (bus stop) IDs.

        Returns:
            Sorted stop IDs, empty if the feed could not be loaded.
        """
        try:
            trips = self.fetch_trips()
        except FeedError as e:
            logger.warning(f"Could not list stops: {e}")
            return []
        return collect_stop_ids(trips, exclude_numeric=exclude_numeric)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock())

    @staticmethod
    def _validate_stop_id(stop_id: str) -> str:
        stop_id = (stop_id or "").strip()
        if not stop_id:
            raise ValueError("Stop ID must not be empty")
        return stop_id

    def cleanup(self) -> None:
        """Release the HTTP session."""
        if self._client is not None:
            self._client.close()
        logger.info("Cleaned up tracker resources")
