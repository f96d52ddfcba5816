"""Data models for the GO Transit stop tracker."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


def delay_to_minutes(delay_seconds: Optional[int]) -> int:
    """Convert a feed delay (seconds) to whole minutes, rounding up.

    Early or on-time trips (delay <= 0) report 0 minutes.
    """
    if not delay_seconds or delay_seconds <= 0:
        return 0
    return math.ceil(delay_seconds / 60)


class Direction(Enum):
    """Direction selector for a stop query."""
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    ALL = "All"

    @property
    def direction_id(self) -> Optional[int]:
        """GTFS direction_id required by this selector (None for ALL)."""
        if self is Direction.INBOUND:
            return 0
        if self is Direction.OUTBOUND:
            return 1
        return None

    @classmethod
    def parse(cls, value: str) -> "Direction":
        """Look up a direction by value or name, case-insensitive."""
        for member in cls:
            if value.strip().lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown direction '{value}'")


class ScheduleRelationshipKind(Enum):
    SCHEDULED = "SCHEDULED"
    SKIPPED = "SKIPPED"
    NO_DATA = "NO_DATA"
    ADDED = "ADDED"
    UNSCHEDULED = "UNSCHEDULED"
    CANCELED = "CANCELED"
    REPLACEMENT = "REPLACEMENT"
    DUPLICATED = "DUPLICATED"
    DELETED = "DELETED"
    OTHER = "OTHER"


@dataclass(frozen=True)
class ScheduleRelationship:
    """Schedule relationship reported by the feed.

    Unrecognized values map to OTHER and keep the raw string, so newer feed
    values survive a round trip through the models.
    """
    kind: ScheduleRelationshipKind
    raw: str

    @classmethod
    def parse(cls, raw: str) -> "ScheduleRelationship":
        normalized = raw.strip().upper()
        try:
            kind = ScheduleRelationshipKind(normalized)
        except ValueError:
            kind = ScheduleRelationshipKind.OTHER
        if kind is ScheduleRelationshipKind.OTHER:
            return cls(kind=kind, raw=raw)
        return cls(kind=kind, raw=normalized)

    @property
    def is_skipped(self) -> bool:
        return self.kind is ScheduleRelationshipKind.SKIPPED


@dataclass
class FeedHeader:
    """GTFS-realtime feed header."""
    gtfs_realtime_version: Optional[str] = None
    incrementality: Optional[str] = None  # e.g. "FULL_DATASET"
    timestamp: Optional[int] = None  # Unix timestamp


@dataclass
class StopTimeEvent:
    """Arrival or departure prediction at a stop."""
    delay: Optional[int] = None  # Seconds
    time: Optional[int] = None  # Unix timestamp
    uncertainty: Optional[int] = None


@dataclass
class StopTimeUpdate:
    """Timing for one stop along a trip."""
    stop_id: Optional[str] = None
    arrival: Optional[StopTimeEvent] = None
    departure: Optional[StopTimeEvent] = None
    schedule_relationship: Optional[ScheduleRelationship] = None

    @property
    def arrival_time(self) -> Optional[int]:
        return self.arrival.time if self.arrival else None

    @property
    def departure_time(self) -> Optional[int]:
        return self.departure.time if self.departure else None


@dataclass
class TripDescriptor:
    trip_id: Optional[str] = None
    route_id: Optional[str] = None
    direction_id: Optional[int] = None  # 0 = inbound, 1 = outbound
    start_time: Optional[str] = None  # e.g. "20:14:00"
    start_date: Optional[str] = None  # e.g. "20250101"
    schedule_relationship: Optional[ScheduleRelationship] = None


@dataclass
class VehicleDescriptor:
    id: Optional[str] = None
    label: Optional[str] = None  # e.g. "LW - Aldershot GO"
    license_plate: Optional[str] = None


@dataclass
class TripUpdatePayload:
    """Trip update as carried by a feed entity."""
    trip: Optional[TripDescriptor] = None
    vehicle: Optional[VehicleDescriptor] = None
    stop_time_updates: List[StopTimeUpdate] = field(default_factory=list)
    timestamp: Optional[int] = None
    delay: Optional[int] = None  # Seconds


@dataclass
class FeedEntity:
    id: str
    is_deleted: Optional[bool] = None
    trip_update: Optional[TripUpdatePayload] = None


@dataclass
class Feed:
    """A decoded GTFS-realtime feed."""
    header: FeedHeader
    entities: List[FeedEntity] = field(default_factory=list)


@dataclass(frozen=True)
class TripUpdate:
    """Flattened trip record derived from one feed entity."""
    id: str
    trip_id: str
    route_id: str
    delay: Optional[int]  # Seconds
    stop_time_updates: tuple  # Tuple[StopTimeUpdate, ...]
    direction_id: Optional[int] = None
    vehicle_label: Optional[str] = None
    schedule_relationship: Optional[ScheduleRelationship] = None
    start_time: Optional[str] = None
    start_date: Optional[str] = None

    def first_stop_time(self, stop_id: str) -> Optional[StopTimeUpdate]:
        """Return the first stop-time update for stop_id, if any."""
        for stop_time in self.stop_time_updates:
            if stop_time.stop_id == stop_id:
                return stop_time
        return None


@dataclass(frozen=True)
class UpcomingTrip:
    """Display-ready trip at a single stop."""
    trip_id: str
    vehicle_label: str
    direction_text: str
    route_id: str
    departure_time: int  # Unix timestamp, 0 when unknown
    arrival_time: int  # Unix timestamp, 0 when unknown
    delay_seconds: int = 0
    stop_time: Optional[StopTimeUpdate] = None

    @property
    def has_departure_time(self) -> bool:
        return self.departure_time > 0

    @property
    def delay_minutes(self) -> int:
        return delay_to_minutes(self.delay_seconds)


@dataclass
class StopBoard:
    """Result of a single poll for a stop."""
    stop_id: str
    direction: Direction
    trips: List[UpcomingTrip]
    last_fetch_time: datetime
    ok: bool = True  # False when the poll degraded to no data


@dataclass
class TimelineEntry:
    """Snapshot of upcoming trips as of a future moment."""
    date: datetime
    stop_id: str
    direction: Direction
    trips: List[UpcomingTrip]
    last_fetch_time: datetime
