"""GTFS-Realtime feed decoder (JSON and protobuf)."""

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import DecodeError
from .models import (
    Feed,
    FeedEntity,
    FeedHeader,
    ScheduleRelationship,
    StopTimeEvent,
    StopTimeUpdate,
    TripDescriptor,
    TripUpdatePayload,
    VehicleDescriptor,
)

logger = logging.getLogger(__name__)

# Numeric enum values, for feeds that encode enums as integers
TRIP_SCHEDULE_RELATIONSHIP = {
    0: "SCHEDULED",
    1: "ADDED",
    2: "UNSCHEDULED",
    3: "CANCELED",
    5: "REPLACEMENT",
    6: "DUPLICATED",
    7: "DELETED",
}

STOP_SCHEDULE_RELATIONSHIP = {
    0: "SCHEDULED",
    1: "SKIPPED",
    2: "NO_DATA",
    3: "UNSCHEDULED",
}

INCREMENTALITY = {
    0: "FULL_DATASET",
    1: "DIFFERENTIAL",
}


def decode_feed(data: bytes, feed_format: str = "json") -> Feed:
    """
    Decode a raw GTFS-Realtime payload.

    Args:
        data: Raw response bytes.
        feed_format: "json" or "protobuf".

    Returns:
        Decoded Feed.

    Raises:
        DecodeError: If the payload is malformed or does not match the schema.
            A single bad entity fails the whole feed.
    """
    if feed_format == "json":
        try:
            document = json.loads(data)
        except (ValueError, RecursionError) as e:
            logger.error(f"Failed to parse feed JSON: {e}")
            raise DecodeError(f"Invalid JSON payload: {e}") from e
    elif feed_format == "protobuf":
        document = _protobuf_to_dict(data)
    else:
        raise DecodeError(f"Unsupported feed format '{feed_format}'")

    if logger.isEnabledFor(logging.DEBUG) and feed_format == "json":
        logger.debug(f"Raw feed: {data[:500]!r}")

    try:
        feed = _parse_feed(document)
    except DecodeError as e:
        logger.error(f"Feed does not match GTFS-Realtime schema: {e}")
        raise

    logger.info(
        f"Decoded feed with {len(feed.entities)} entities "
        f"(version={feed.header.gtfs_realtime_version}, timestamp={feed.header.timestamp})"
    )
    return feed


def _protobuf_to_dict(data: bytes) -> Dict[str, Any]:
    """Parse protobuf bytes into the same dict shape as the JSON feed."""
    from google.protobuf import json_format
    from google.protobuf.message import DecodeError as ProtobufDecodeError
    from google.transit import gtfs_realtime_pb2

    message = gtfs_realtime_pb2.FeedMessage()
    try:
        message.ParseFromString(data)
    except ProtobufDecodeError as e:
        logger.error(f"Failed to parse feed protobuf: {e}")
        raise DecodeError(f"Invalid protobuf payload: {e}") from e

    return json_format.MessageToDict(message, preserving_proto_field_name=True)


def _parse_feed(document: Any) -> Feed:
    if not isinstance(document, dict):
        raise DecodeError("Feed must be a JSON object")

    header = _object(document.get("header"), "header")
    if header is None:
        raise DecodeError("Feed is missing 'header'")

    entities = document.get("entity")
    if not isinstance(entities, list):
        raise DecodeError("Feed is missing 'entity' list")

    return Feed(
        header=_parse_header(header),
        entities=[_parse_entity(raw, f"entity[{i}]") for i, raw in enumerate(entities)],
    )


def _parse_header(raw: Dict[str, Any]) -> FeedHeader:
    version = raw.get("gtfs_realtime_version", raw.get("gtfsRealtimeVersion"))
    incrementality = raw.get("incrementality")
    if isinstance(incrementality, int) and not isinstance(incrementality, bool):
        incrementality = INCREMENTALITY.get(incrementality, str(incrementality))

    return FeedHeader(
        gtfs_realtime_version=_string(version, "header.gtfs_realtime_version"),
        incrementality=_string(incrementality, "header.incrementality"),
        timestamp=_integer(raw.get("timestamp"), "header.timestamp"),
    )


def _parse_entity(value: Any, path: str) -> FeedEntity:
    raw = _object(value, path)
    if raw is None:
        raise DecodeError(f"{path} must be an object")

    entity_id = _string(raw.get("id"), f"{path}.id")
    if entity_id is None:
        raise DecodeError(f"{path} is missing 'id'")

    trip_update = _object(raw.get("trip_update"), f"{path}.trip_update")

    return FeedEntity(
        id=entity_id,
        is_deleted=_boolean(raw.get("is_deleted"), f"{path}.is_deleted"),
        trip_update=_parse_trip_update(trip_update, f"{path}.trip_update") if trip_update is not None else None,
    )


def _parse_trip_update(raw: Dict[str, Any], path: str) -> TripUpdatePayload:
    trip = _object(raw.get("trip"), f"{path}.trip")
    vehicle = _object(raw.get("vehicle"), f"{path}.vehicle")
    stop_time_updates = _array(raw.get("stop_time_update"), f"{path}.stop_time_update")

    return TripUpdatePayload(
        trip=_parse_trip(trip, f"{path}.trip") if trip is not None else None,
        vehicle=_parse_vehicle(vehicle, f"{path}.vehicle") if vehicle is not None else None,
        stop_time_updates=[
            _parse_stop_time_update(item, f"{path}.stop_time_update[{i}]")
            for i, item in enumerate(stop_time_updates)
        ],
        timestamp=_integer(raw.get("timestamp"), f"{path}.timestamp"),
        delay=_integer(raw.get("delay"), f"{path}.delay"),
    )


def _parse_trip(raw: Dict[str, Any], path: str) -> TripDescriptor:
    return TripDescriptor(
        trip_id=_string(raw.get("trip_id"), f"{path}.trip_id"),
        route_id=_string(raw.get("route_id"), f"{path}.route_id"),
        direction_id=_integer(raw.get("direction_id"), f"{path}.direction_id"),
        start_time=_string(raw.get("start_time"), f"{path}.start_time"),
        start_date=_string(raw.get("start_date"), f"{path}.start_date"),
        schedule_relationship=_schedule_relationship(
            raw.get("schedule_relationship"), TRIP_SCHEDULE_RELATIONSHIP, f"{path}.schedule_relationship"
        ),
    )


def _parse_vehicle(raw: Dict[str, Any], path: str) -> VehicleDescriptor:
    return VehicleDescriptor(
        id=_string(raw.get("id"), f"{path}.id"),
        label=_string(raw.get("label"), f"{path}.label"),
        license_plate=_string(raw.get("license_plate"), f"{path}.license_plate"),
    )


def _parse_stop_time_update(value: Any, path: str) -> StopTimeUpdate:
    raw = _object(value, path)
    if raw is None:
        raise DecodeError(f"{path} must be an object")

    arrival = _object(raw.get("arrival"), f"{path}.arrival")
    departure = _object(raw.get("departure"), f"{path}.departure")

    return StopTimeUpdate(
        stop_id=_string(raw.get("stop_id"), f"{path}.stop_id"),
        arrival=_parse_stop_time_event(arrival, f"{path}.arrival") if arrival is not None else None,
        departure=_parse_stop_time_event(departure, f"{path}.departure") if departure is not None else None,
        schedule_relationship=_schedule_relationship(
            raw.get("schedule_relationship"), STOP_SCHEDULE_RELATIONSHIP, f"{path}.schedule_relationship"
        ),
    )


def _parse_stop_time_event(raw: Dict[str, Any], path: str) -> StopTimeEvent:
    return StopTimeEvent(
        delay=_integer(raw.get("delay"), f"{path}.delay"),
        time=_integer(raw.get("time"), f"{path}.time"),
        uncertainty=_integer(raw.get("uncertainty"), f"{path}.uncertainty"),
    )


# Field coercion. None means the field is absent; a present field of the
# wrong type raises DecodeError.

def _object(value: Any, path: str) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise DecodeError(f"{path} must be an object, got {type(value).__name__}")
    return value


def _array(value: Any, path: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"{path} must be a list, got {type(value).__name__}")
    return value


def _string(value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{path} must be a string, got {type(value).__name__}")
    return value


def _integer(value: Any, path: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise DecodeError(f"{path} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    # Protobuf JSON mapping writes 64-bit integers as strings
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isascii() and digits.isdigit():
            return int(text)
    raise DecodeError(f"{path} must be an integer, got {value!r}")


def _boolean(value: Any, path: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise DecodeError(f"{path} must be a boolean, got {type(value).__name__}")
    return value


def _schedule_relationship(value: Any, numeric: Dict[int, str], path: str) -> Optional[ScheduleRelationship]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return ScheduleRelationship.parse(numeric.get(value, str(value)))
    if isinstance(value, str):
        return ScheduleRelationship.parse(value)
    raise DecodeError(f"{path} must be a string, got {type(value).__name__}")
