class TrackerError(Exception):
    """Base class for errors raised by the roster tracker."""


class RemoteError(TrackerError):
    """A call to the Codeforces API did not produce a usable result."""

    def __init__(self, message: str, endpoint: str | None = None):
        super().__init__(message)
        self.endpoint = endpoint


class TransportError(RemoteError):
    """The request could not be completed (network failure or non-2xx status)."""

    def __init__(self, message: str, endpoint: str | None = None, status_code: int | None = None):
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code


class RemoteServiceError(RemoteError):
    """The API answered but reported a failure or returned no result."""

    def __init__(self, message: str, endpoint: str | None = None, comment: str | None = None):
        super().__init__(message, endpoint=endpoint)
        self.comment = comment


class NotFoundError(TrackerError):
    def __init__(self, student_id: str):
        super().__init__(f"Student {student_id} not found.")
        self.student_id = student_id


class SyncCancelled(TrackerError):
    pass
