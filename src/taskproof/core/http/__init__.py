from .client import RetryPolicy, get_http_client, request_with_retry
from .errors import TaskproofHTTPError, TaskproofHTTPNetworkError, TaskproofHTTPStatusError

__all__ = [
    "RetryPolicy",
    "get_http_client",
    "request_with_retry",
    "TaskproofHTTPError",
    "TaskproofHTTPNetworkError",
    "TaskproofHTTPStatusError",
]
