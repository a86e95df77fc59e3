from __future__ import annotations

import os
import random
import threading
import time
from dataclasses import dataclass

import httpx

from .errors import TaskproofHTTPNetworkError, TaskproofHTTPStatusError, TaskproofHTTPTimeoutError

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
_RETRYABLE_EXCEPTIONS = (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError)
_USER_AGENT = "taskproof/0.3"

_client: httpx.Client | None = None
_client_lock = threading.Lock()


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait between attempts."""

    retries: int = 2
    backoff_base_s: float = 0.25
    backoff_max_s: float = 2.0

    @classmethod
    def from_env(cls, retries: int | None = None) -> "RetryPolicy":
        configured = int(_env_number("TASKPROOF_HTTP_RETRIES", cls.retries, int))
        return cls(
            retries=max(0, configured if retries is None else retries),
            backoff_base_s=max(0.01, _env_number("TASKPROOF_HTTP_BACKOFF_BASE_S", cls.backoff_base_s)),
            backoff_max_s=max(0.01, _env_number("TASKPROOF_HTTP_BACKOFF_MAX_S", cls.backoff_max_s)),
        )

    def delay_s(self, attempt: int) -> float:
        # Exponential with +/-50% jitter.
        return min(self.backoff_max_s, self.backoff_base_s * (2**attempt)) * (0.5 + random.random())

    def wait(self, attempt: int) -> None:
        time.sleep(self.delay_s(attempt))


def _timeout(total_s: float | None = None) -> httpx.Timeout:
    total = total_s if total_s is not None else _env_number("TASKPROOF_HTTP_TIMEOUT_S", 15.0)
    total = max(0.1, total)
    connect = max(0.1, _env_number("TASKPROOF_HTTP_CONNECT_TIMEOUT_S", 5.0))
    return httpx.Timeout(total, connect=min(connect, total))


def get_http_client() -> httpx.Client:
    """Process-wide client, created on first use."""
    global _client
    with _client_lock:
        if _client is None:
            _client = httpx.Client(
                timeout=_timeout(),
                headers={"User-Agent": os.getenv("TASKPROOF_HTTP_USER_AGENT", _USER_AGENT)},
            )
        return _client


def request_with_retry(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    json: object | None = None,
    timeout_override: float | None = None,
    retries: int | None = None,
    redact_url: bool = False,
) -> httpx.Response:
    """Send one request, retrying connection failures and 429/5xx answers.

    Raises ``TaskproofHTTPStatusError`` for a final non-2xx answer and
    ``TaskproofHTTPNetworkError`` (``TaskproofHTTPTimeoutError`` when the last
    attempt timed out) once the transport keeps failing.
    """
    policy = RetryPolicy.from_env(retries)
    shown_url = "[redacted-url]" if redact_url else url
    extra: dict[str, object] = {} if timeout_override is None else {"timeout": _timeout(timeout_override)}
    client = get_http_client()

    attempt = 0
    while True:
        last_attempt = attempt >= policy.retries
        try:
            response = client.request(method, url, headers=headers, json=json, **extra)
        except _RETRYABLE_EXCEPTIONS as exc:
            if last_attempt:
                error_cls = TaskproofHTTPTimeoutError if isinstance(exc, httpx.TimeoutException) else TaskproofHTTPNetworkError
                raise error_cls(f"HTTP request failed after {attempt + 1} attempts for {shown_url}: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            raise TaskproofHTTPNetworkError(f"HTTP request error for {shown_url}: {type(exc).__name__}") from exc
        else:
            status = response.status_code
            if response.is_success:
                return response
            if last_attempt or status not in _RETRYABLE_STATUS_CODES:
                raise TaskproofHTTPStatusError(f"HTTP status {status} for {shown_url}", status_code=status)

        policy.wait(attempt)
        attempt += 1
