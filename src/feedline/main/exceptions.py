"""Exception taxonomy shared by every feedline component.

Upstream errors are mostly absorbed inside the upstream client; the
remaining ones surface either synchronously to an HTTP caller (see
``EXCEPTION_MAP``) or are logged by the task submitter for background
workflows.
"""

from __future__ import annotations


class FeedlineException(Exception):
    pass


class UpstreamRateLimited(FeedlineException):
    """Upstream answered 429; retried transparently."""


class UpstreamNotFound(FeedlineException):
    """Upstream answered 404; callers see an empty result instead."""


class UpstreamOther(FeedlineException):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class StorageSerializationConflict(FeedlineException):
    """A serializable transaction kept conflicting until the attempt bound."""


class UnknownCategory(FeedlineException):
    def __init__(self, category: str):
        super().__init__(f"Unknown category: {category}")
        self.category = category


class JobAlreadyQueued(FeedlineException):
    """Not an error: the fingerprint already has a live job, bump it instead."""

    def __init__(self, fingerprint: str):
        super().__init__(f"Job already queued for fingerprint {fingerprint}")
        self.fingerprint = fingerprint


class NotFoundException(FeedlineException):
    pass


class AlreadyIngestedException(FeedlineException):
    pass


class NotReadyException(FeedlineException):
    pass


class SweepAlreadyRunning(FeedlineException):
    def __init__(self, category: str, operation: str):
        super().__init__(f"Sweep {operation} for {category} is already running")
        self.category = category
        self.operation = operation


# Exception -> (status_code, message override, error_code)
EXCEPTION_MAP: dict[type[Exception], tuple[int, str | None, int]] = {
    UnknownCategory: (404, None, 9001),
    NotFoundException: (404, None, 9002),
    AlreadyIngestedException: (304, None, 9003),
    SweepAlreadyRunning: (409, None, 9004),
    NotReadyException: (503, "Service is not ready", 9005),
    StorageSerializationConflict: (503, "Storage is busy, try again", 9006),
}
