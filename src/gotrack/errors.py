"""Exceptions raised by the feed pipeline."""


class FeedError(Exception):
    """Base class for failures while obtaining trip data."""


class TransportError(FeedError):
    """Raised when the feed cannot be downloaded (connection, timeout, HTTP status)."""


class DecodeError(FeedError):
    """Raised when the feed payload is malformed or does not match the schema."""


class InvalidEndpoint(FeedError):
    """Raised when the feed URL cannot be built."""


__all__ = [
    "FeedError",
    "TransportError",
    "DecodeError",
    "InvalidEndpoint",
]
