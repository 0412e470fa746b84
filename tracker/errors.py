"""
Error taxonomy shared by the fetcher, the position client and the pass search.
"""


class TrackerError(Exception):
    """Base class for all tracker failures."""


class TransportError(TrackerError):
    """Network unreachable, connection dropped or non-2xx status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class FetchTimeoutError(TransportError):
    """No response arrived within the timeout; the request was cancelled."""


class PayloadError(TrackerError):
    """Expected field absent or malformed. Retrying will not fix it."""


class SinkWriteError(TrackerError):
    """Insert into the external log sink failed."""


class PassLookupError(TrackerError):
    """The pass table for a location could not be produced."""
