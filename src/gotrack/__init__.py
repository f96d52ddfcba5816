"""gotrack - Upcoming GO Transit departures from the GTFS-Realtime feed."""

__version__ = "0.1.0"

from .models import Direction, TripUpdate, UpcomingTrip, StopBoard, TimelineEntry
from .errors import FeedError, TransportError, DecodeError, InvalidEndpoint
from .feed_client import GOTransitClient
from .feed_decoder import decode_feed
from .trip_projector import project_trips
from .stop_filter import MissingTimePolicy, filter_trips_for_stop
from .refresh import RefreshGuard, RefreshState
from .stop_tracker import GOStopTracker

__all__ = [
    "GOStopTracker",
    "GOTransitClient",
    "decode_feed",
    "project_trips",
    "filter_trips_for_stop",
    "MissingTimePolicy",
    "RefreshGuard",
    "RefreshState",
    "Direction",
    "TripUpdate",
    "UpcomingTrip",
    "StopBoard",
    "TimelineEntry",
    "FeedError",
    "TransportError",
    "DecodeError",
    "InvalidEndpoint",
]
