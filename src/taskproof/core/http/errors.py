from __future__ import annotations


class TaskproofHTTPError(RuntimeError):
    """Base error for shared HTTP client operations."""


class TaskproofHTTPStatusError(TaskproofHTTPError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TaskproofHTTPNetworkError(TaskproofHTTPError):
    """Raised for transport errors once retries are used up."""


class TaskproofHTTPTimeoutError(TaskproofHTTPNetworkError):
    """Raised when the final attempt timed out."""
