class LiveSyncError(Exception):
    """Base class for engine errors."""


class UnknownStreamError(LiveSyncError, KeyError):
    def __init__(self, stream: str):
        super().__init__(stream)
        self.stream = stream

    def __str__(self) -> str:
        return f"Unknown stream: {self.stream}"


class FetchError(LiveSyncError):
    """Data source could not produce a record for a stream."""

    def __init__(self, stream: str, message: str):
        super().__init__(f"{stream}: {message}")
        self.stream = stream


class MalformedRecordError(FetchError):
    """Record fetched but missing or carrying invalid required fields."""
