"""
Error taxonomy for the image feed core.

Foreground paths (``ImagePipeline.image`` and ``LookaheadQueue.fill_to_target``)
raise these to the caller. Best-effort paths (prefetch, disk writes) catch them
locally and only log.
"""
from typing import Optional


class CatFinderError(Exception):
    """Base class for all errors raised by the feed core.

    ``message`` is always a human-readable sentence suitable for showing in
    the UI as-is.
    """

    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NetworkError(CatFinderError):
    """Transport failure, timeout or non-2xx status while fetching a resource."""

    default_message = "The network request failed."

    def __init__(self, message: Optional[str] = None, url: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class DecodeError(CatFinderError):
    """Bytes could not be decoded into an image."""

    default_message = "The data wasn't a valid image."


class InvalidMediaError(DecodeError):
    """Decode failed after a successful fetch."""

    default_message = "The downloaded data wasn't a valid image."

    def __init__(self, message: Optional[str] = None, url: str = ""):
        super().__init__(message)
        self.url = url


class DiscoveryError(CatFinderError):
    """The remote discovery API failed or returned something unusable."""

    default_message = "Invalid server response."


class OfflineError(CatFinderError):
    """Connectivity is known to be down; no network call was attempted."""

    default_message = "You're offline. Connect and tap Retry."


class DiskError(CatFinderError):
    """Disk cache I/O failure. Always swallowed inside the disk tier."""

    default_message = "Disk cache operation failed."


__all__ = [
    "CatFinderError",
    "NetworkError",
    "DecodeError",
    "InvalidMediaError",
    "DiscoveryError",
    "OfflineError",
    "DiskError",
]
