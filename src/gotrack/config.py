"""Configuration for the GO Transit feed."""

import os
from dataclasses import dataclass
from typing import Optional

# Metrolinx Open Data API
GO_TRANSIT_BASE_URL = "https://api.openmetrolinx.com/OpenDataAPI/api/V1"
TRIP_UPDATES_PATHS = {
    "json": "/Gtfs/Feed/TripUpdates",
    "protobuf": "/Gtfs.proto/Feed/TripUpdates",
}
FEED_FORMATS = tuple(TRIP_UPDATES_PATHS)

DEFAULT_FEED_FORMAT = "json"
DEFAULT_TIMEOUT = 10  # Seconds
DEFAULT_STOP_ID = "UN"  # Union Station

MANUAL_REFRESH_INTERVAL = 60  # Seconds between accepted manual refreshes
TIMELINE_MINUTES = 30
TIMELINE_STEP_SECONDS = 60


@dataclass
class Settings:
    """Feed settings, usually read from the environment."""
    api_key: Optional[str] = None
    feed_url: Optional[str] = None  # Overrides the URL derived from feed_format
    feed_format: str = DEFAULT_FEED_FORMAT
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from GOTRACK_* environment variables.

        Recognized variables: GOTRACK_API_KEY, GOTRACK_FEED_URL,
        GOTRACK_FEED_FORMAT and GOTRACK_TIMEOUT.
        """
        feed_format = os.environ.get("GOTRACK_FEED_FORMAT", DEFAULT_FEED_FORMAT).strip().lower()
        if feed_format not in FEED_FORMATS:
            raise ValueError(f"Unsupported feed format '{feed_format}'")

        timeout_raw = os.environ.get("GOTRACK_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise ValueError(f"GOTRACK_TIMEOUT must be a number, got '{timeout_raw}'")

        return cls(
            api_key=os.environ.get("GOTRACK_API_KEY") or None,
            feed_url=os.environ.get("GOTRACK_FEED_URL") or None,
            feed_format=feed_format,
            timeout=timeout,
        )
