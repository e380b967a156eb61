"""Exception types raised by the playlist fetcher, logo cache, guide loader and state store."""


class IPTVBackendError(Exception):
    """Base class for all backend errors."""


# Playlist transport

class PlaylistFetchError(IPTVBackendError):
    """Fetching a playlist over HTTP failed."""


class ClientBuildError(PlaylistFetchError):
    """The HTTP client could not be constructed."""


class PlaylistNetworkError(PlaylistFetchError):
    """The request never produced a response (DNS, connect, timeout...)."""


class PlaylistHTTPStatusError(PlaylistFetchError):
    """The server answered with a non-success status."""

    def __init__(self, status_code: int, reason: str = "Unknown"):
        self.status_code = status_code
        self.reason = reason or "Unknown"
        super().__init__(f"HTTP {status_code}: {self.reason}")


class PlaylistBodyReadError(PlaylistFetchError):
    """The response body could not be read or decoded."""


class PlaylistParseError(IPTVBackendError):
    """Raw playlist bytes could not be turned into text."""


# Logo cache

class LogoCacheError(IPTVBackendError):
    """Caching a logo image failed."""


class LogoCacheDirError(LogoCacheError):
    """The cache directory could not be created."""


class LogoDownloadError(LogoCacheError):
    """The logo could not be downloaded."""


class LogoCacheWriteError(LogoCacheError):
    """The downloaded logo could not be written to disk."""


class StateError(IPTVBackendError):
    """Persisted settings could not be imported."""


# Programme guide

class EPGError(IPTVBackendError):
    """Loading the programme guide failed."""


class EPGParseError(EPGError):
    """The guide document is not readable XMLTV."""
