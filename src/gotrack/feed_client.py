"""GO Transit GTFS-Realtime feed client."""

import logging
from typing import Optional
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import requests

from .config import (
    DEFAULT_FEED_FORMAT,
    DEFAULT_TIMEOUT,
    FEED_FORMATS,
    GO_TRANSIT_BASE_URL,
    TRIP_UPDATES_PATHS,
)
from .errors import InvalidEndpoint, TransportError

logger = logging.getLogger(__name__)

ACCEPT_HEADERS = {
    "json": "application/json",
    "protobuf": "application/x-protobuf",
}


def build_feed_url(base_url: str, api_key: Optional[str] = None) -> str:
    """
    Validate a feed URL and append the API key query parameter.

    Args:
        base_url: Absolute http(s) URL of the feed.
        api_key: Optional Metrolinx API key, sent as the ``key`` parameter.

    Returns:
        The full URL to request.

    Raises:
        InvalidEndpoint: If the URL is not an absolute http(s) URL.
    """
    try:
        parsed = urlparse(base_url or "")
        parsed.port  # Raises ValueError for a malformed or out-of-range port
    except ValueError as e:
        raise InvalidEndpoint(f"Invalid feed URL: '{base_url}'") from e
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidEndpoint(f"Invalid feed URL: '{base_url}'")

    if not api_key:
        return base_url

    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "key"]
    query.append(("key", api_key))
    return urlunparse(parsed._replace(query=urlencode(query)))


def trip_updates_url(feed_format: str = DEFAULT_FEED_FORMAT) -> str:
    """Return the Metrolinx TripUpdates URL for a feed format."""
    if feed_format not in FEED_FORMATS:
        raise InvalidEndpoint(f"Unsupported feed format '{feed_format}'")
    return GO_TRANSIT_BASE_URL + TRIP_UPDATES_PATHS[feed_format]


class GOTransitClient:
    """Downloads the GO Transit TripUpdates feed."""

    def __init__(
        self,
        feed_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        feed_format: str = DEFAULT_FEED_FORMAT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            feed_url: Feed URL. Defaults to the Metrolinx TripUpdates endpoint
                for ``feed_format``.
            api_key: Metrolinx API key appended as the ``key`` query parameter.
            timeout: Request timeout in seconds.
            feed_format: "json" or "protobuf".
            session: Optional requests session to reuse.

        Raises:
            InvalidEndpoint: If the URL cannot be built.
        """
        if feed_format not in FEED_FORMATS:
            raise InvalidEndpoint(f"Unsupported feed format '{feed_format}'")
        self.feed_format = feed_format
        self.feed_url = build_feed_url(feed_url or trip_updates_url(feed_format), api_key)
        self.timeout = timeout
        self.headers = {"Accept": ACCEPT_HEADERS.get(feed_format, "*/*")}
        self._session = session or requests.Session()

    def fetch_feed(self) -> bytes:
        """
        Fetch the raw feed payload with a single GET request.

        Returns:
            Raw response bytes.

        Raises:
            TransportError: On connection failure, timeout or non-2xx status.
        """
        logger.debug(f"Fetching {self._redacted_url()}")
        try:
            response = self._session.get(self.feed_url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {self._redacted_url()}: {e}")
            raise TransportError(f"Request to feed failed: {e}") from e

        logger.debug(f"HTTP status code: {response.status_code}")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Feed returned HTTP {response.status_code}")
            raise TransportError(f"Feed returned HTTP {response.status_code}") from e

        data = response.content
        logger.debug(f"Downloaded {len(data)} bytes")
        return data

    def _redacted_url(self) -> str:
        """Feed URL with the API key masked, for logging."""
        parsed = urlparse(self.feed_url)
        if not parsed.query:
            return self.feed_url
        query = [
            (k, "***" if k == "key" else v)
            for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        ]
        return urlunparse(parsed._replace(query=urlencode(query, safe="*")))

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "GOTransitClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
