"""Error taxonomy shared by all provider clients.

Every failure surfaced by gigbuddy derives from GigBuddyError so callers can
render a message without knowing which provider or transport produced it.
"""


class GigBuddyError(Exception):
    """Base class for all gigbuddy errors."""


class InvalidURLError(GigBuddyError):
    """A request URL could not be constructed."""


class NetworkError(GigBuddyError):
    """Transport-level failure. Always safe for the caller to retry."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class InvalidResponseError(GigBuddyError):
    """The provider response did not have the expected shape."""

    def __init__(self, message: str = "Invalid response from server"):
        super().__init__(message)


class ApiError(GigBuddyError):
    """The provider reported an application error.

    The message is surfaced verbatim to the user.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidApiKeyError(ApiError):
    """HTTP 401 from an API-key authenticated provider."""

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, status_code=401)


class NoResultsError(ApiError):
    """The provider has nothing for the query (HTTP 404)."""

    def __init__(self, message: str = "No results found"):
        super().__init__(message, status_code=404)


class SpotifyError(GigBuddyError):
    """Base class for playlist creation failures."""


class AuthenticationFailedError(SpotifyError):
    """No credential could be established (denied, cancelled or forged callback)."""


class TokenRefreshFailedError(SpotifyError):
    """A stored refresh token was rejected. The stored credential gets cleared."""


class NoMatchFoundError(SpotifyError):
    """None of the setlist's songs matched a track."""

    def __init__(self, message: str = "None of the songs could be found on Spotify"):
        super().__init__(message)


class SearchFailedError(SpotifyError):
    """The track search endpoint returned an error."""

    def __init__(self, query: str, status_code: int | None = None):
        self.query = query
        self.status_code = status_code
        super().__init__(f"Failed to search for '{query}' (status {status_code})")


class PlaylistCreationFailedError(SpotifyError):
    """Creating the playlist or attaching its tracks failed.

    `stage` is "create" or "add_tracks" so the caller can say what to retry.
    """

    def __init__(self, stage: str, status_code: int | None = None, playlist_id: str | None = None):
        self.stage = stage
        self.status_code = status_code
        self.playlist_id = playlist_id
        super().__init__(f"Playlist creation failed at stage '{stage}' (status {status_code})")


class GigImportError(GigBuddyError):
    """An import file could not be read or contained invalid data."""
