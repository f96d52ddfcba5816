"""Projects decoded feed entities into flat TripUpdate records."""

import logging
from typing import Iterable, List, Optional

from .models import Feed, FeedEntity, TripUpdate

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def _or_unknown(value: Optional[str]) -> str:
    return UNKNOWN if value is None else value


def project_entity(entity: FeedEntity) -> Optional[TripUpdate]:
    """
    Convert one feed entity into a TripUpdate.

    Entities without a trip update payload (e.g. vehicle positions or alerts
    sharing the feed) return None.
    """
    payload = entity.trip_update
    if payload is None:
        return None

    trip = payload.trip
    vehicle = payload.vehicle

    return TripUpdate(
        id=entity.id,
        trip_id=_or_unknown(trip.trip_id if trip else None),
        route_id=_or_unknown(trip.route_id if trip else None),
        delay=payload.delay,
        stop_time_updates=tuple(payload.stop_time_updates),
        direction_id=trip.direction_id if trip else None,
        vehicle_label=vehicle.label if vehicle else None,
        schedule_relationship=trip.schedule_relationship if trip else None,
        start_time=trip.start_time if trip else None,
        start_date=trip.start_date if trip else None,
    )


def project_trips(feed: Feed) -> List[TripUpdate]:
    """
    Project every trip-update entity of a feed, preserving feed order.

    Args:
        feed: Decoded feed.

    Returns:
        List of TripUpdate records.
    """
    trips: List[TripUpdate] = []
    for entity in feed.entities:
        trip = project_entity(entity)
        if trip is not None:
            trips.append(trip)

    skipped = len(feed.entities) - len(trips)
    if skipped:
        logger.debug(f"Skipped {skipped} entities without trip updates")
    logger.debug(f"Projected {len(trips)} trips")
    return trips


def collect_stop_ids(trips: Iterable[TripUpdate], exclude_numeric: bool = True) -> List[str]:
    """
    Collect the unique stop IDs referenced by a list of trips.

    Args:
        trips: Projected trips.
        exclude_numeric: Drop IDs containing digits. GO train stations use
            letter codes (e.g. "UN", "OA") while bus stops are numeric.

    Returns:
        Sorted list of stop IDs.
    """
    stop_ids = set()
    for trip in trips:
        for stop_time in trip.stop_time_updates:
            stop_id = stop_time.stop_id
            if not stop_id:
                continue
            if exclude_numeric and any(ch.isdigit() for ch in stop_id):
                continue
            stop_ids.add(stop_id)
    return sorted(stop_ids)
