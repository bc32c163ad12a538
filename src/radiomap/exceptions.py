"""Custom exception hierarchy for radiomap."""


class RadioMapError(Exception):
    """Base exception for all radiomap errors."""


class DirectoryUnavailable(RadioMapError):
    """The station directory could not be reached or answered badly."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StationNotFound(RadioMapError):
    """Requested station id does not exist in the directory."""

    def __init__(self, station_id: str):
        self.station_id = station_id
        super().__init__(f"Station not found: {station_id}")


class PlaybackError(RadioMapError):
    """Base for failures recorded on a playback session."""


class NoStreamUrl(PlaybackError):
    """Station record has no playable URL."""

    def __init__(self, message: str = "No stream URL available for this station"):
        super().__init__(message)


class PlaybackTimeout(PlaybackError):
    """Stream did not start playing within the load timeout."""

    def __init__(self, message: str = "Timed out waiting for the stream to start"):
        super().__init__(message)


class PlaybackBlocked(PlaybackError):
    """The platform refused to start playback without a user gesture."""

    def __init__(self, message: str = "Playback blocked by platform policy, press play to start"):
        super().__init__(message)


class PlaybackFailed(PlaybackError):
    """The audio transport reported an error."""

    def __init__(self, message: str = "This station is not available right now"):
        super().__init__(message)


class PersistenceError(RadioMapError):
    """Error reading or writing the local key-value store."""


class ImportValidationError(RadioMapError):
    """Favorites import payload is malformed."""


class ConfigError(RadioMapError):
    """Error reading or writing configuration."""
