"""Per-stop trip filtering and ordering."""

import logging
from enum import Enum
from typing import Iterable, List, Optional

from .models import Direction, TripUpdate, UpcomingTrip

logger = logging.getLogger(__name__)

NO_VEHICLE_LABEL = "N/A"


class MissingTimePolicy(Enum):
    """Where trips without a departure time go in a sorted stop list."""
    FIRST = "first"  # Treated as departure time 0
    LAST = "last"
    EXCLUDE = "exclude"


def direction_text(direction_id: Optional[int]) -> str:
    """Return "Inbound", "Outbound" or "Unknown" for a GTFS direction_id."""
    if direction_id == 0:
        return Direction.INBOUND.value
    if direction_id == 1:
        return Direction.OUTBOUND.value
    return "Unknown"


def matches_direction(trip: TripUpdate, direction: Direction) -> bool:
    """
    Check a trip against a direction selector.

    ALL accepts every trip, including trips with no direction_id. INBOUND and
    OUTBOUND require direction_id 0 and 1 exactly.
    """
    if direction is Direction.ALL:
        return True
    return trip.direction_id is not None and trip.direction_id == direction.direction_id


def to_upcoming_trip(trip: TripUpdate, stop_id: str) -> Optional[UpcomingTrip]:
    """Build the display record for a trip at stop_id, or None if it does not stop there."""
    stop_time = trip.first_stop_time(stop_id)
    if stop_time is None:
        return None

    return UpcomingTrip(
        trip_id=trip.trip_id,
        vehicle_label=trip.vehicle_label if trip.vehicle_label is not None else NO_VEHICLE_LABEL,
        direction_text=direction_text(trip.direction_id),
        route_id=trip.route_id,
        departure_time=stop_time.departure_time or 0,
        arrival_time=stop_time.arrival_time or 0,
        delay_seconds=trip.delay or 0,
        stop_time=stop_time,
    )


def sort_by_departure(
    trips: Iterable[UpcomingTrip],
    missing_departure: MissingTimePolicy = MissingTimePolicy.FIRST,
) -> List[UpcomingTrip]:
    """
    Stable sort by departure time.

    Trips without a departure time are placed according to missing_departure.
    Trips with equal departure times keep their input order.
    """
    trips = list(trips)
    if missing_departure is MissingTimePolicy.FIRST:
        return sorted(trips, key=lambda t: t.departure_time)

    timed = [t for t in trips if t.has_departure_time]
    untimed = [t for t in trips if not t.has_departure_time]
    timed.sort(key=lambda t: t.departure_time)
    if missing_departure is MissingTimePolicy.EXCLUDE:
        return timed
    return timed + untimed


def filter_trips_for_stop(
    trips: Iterable[TripUpdate],
    stop_id: str,
    direction: Direction = Direction.ALL,
    missing_departure: MissingTimePolicy = MissingTimePolicy.FIRST,
) -> List[UpcomingTrip]:
    """
    Select the trips serving a stop and order them by departure.

    Args:
        trips: Projected trips, in feed order.
        stop_id: Stop to match against each trip's stop-time updates. Only the
            first matching stop-time update of a trip is used.
        direction: INBOUND, OUTBOUND or ALL.
        missing_departure: Placement of trips without a departure time.

    Returns:
        List of UpcomingTrip objects sorted by departure time.
    """
    results: List[UpcomingTrip] = []
    for trip in trips:
        if not matches_direction(trip, direction):
            continue
        upcoming = to_upcoming_trip(trip, stop_id)
        if upcoming is not None:
            results.append(upcoming)

    ordered = sort_by_departure(results, missing_departure)
    logger.debug(f"{len(ordered)} trips at stop {stop_id} ({direction.value})")
    return ordered


def upcoming_after(trips: Iterable[UpcomingTrip], at: float) -> List[UpcomingTrip]:
    """Keep trips departing at or after the Unix time ``at``, preserving order."""
    return [t for t in trips if t.departure_time >= at]
