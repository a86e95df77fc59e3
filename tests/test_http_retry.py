from __future__ import annotations

import httpx
import pytest

from taskproof.core.http.client import RetryPolicy, request_with_retry
from taskproof.core.http.errors import TaskproofHTTPNetworkError, TaskproofHTTPStatusError, TaskproofHTTPTimeoutError


def _use_transport(monkeypatch, handler) -> None:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    monkeypatch.setattr("taskproof.core.http.client.get_http_client", lambda: client)
    monkeypatch.setattr("taskproof.core.http.client.time.sleep", lambda _: None)
    monkeypatch.setattr("taskproof.core.http.client.random.random", lambda: 0.5)


def test_request_with_retry_retries_transient_http_status(monkeypatch) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503, request=request)
        return httpx.Response(200, request=request, json={"ok": True})

    _use_transport(monkeypatch, handler)

    response = request_with_retry("GET", "http://service.local/test", retries=2)

    assert response.status_code == 200
    assert calls["count"] == 3


def test_client_errors_are_not_retried(monkeypatch) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(404, request=request)

    _use_transport(monkeypatch, handler)

    with pytest.raises(TaskproofHTTPStatusError) as excinfo:
        request_with_retry("GET", "http://service.local/missing", retries=3)
    assert excinfo.value.status_code == 404
    assert calls["count"] == 1


def test_connect_errors_exhaust_retries(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    _use_transport(monkeypatch, handler)

    with pytest.raises(TaskproofHTTPNetworkError) as excinfo:
        request_with_retry("GET", "http://service.local/secret-token", retries=1, redact_url=True)
    assert not isinstance(excinfo.value, TaskproofHTTPTimeoutError)
    assert "secret-token" not in str(excinfo.value)


def test_final_timeout_is_reported_as_timeout(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    _use_transport(monkeypatch, handler)

    with pytest.raises(TaskproofHTTPTimeoutError):
        request_with_retry("POST", "http://service.local/slow", json={}, retries=0, timeout_override=0.5)


def test_retry_policy_reads_environment_and_caps_delay(monkeypatch) -> None:
    monkeypatch.setenv("TASKPROOF_HTTP_RETRIES", "4")
    monkeypatch.setenv("TASKPROOF_HTTP_BACKOFF_MAX_S", "1.0")
    monkeypatch.setenv("TASKPROOF_HTTP_BACKOFF_BASE_S", "not-a-number")
    monkeypatch.setattr("taskproof.core.http.client.random.random", lambda: 0.5)

    policy = RetryPolicy.from_env()
    assert policy.retries == 4
    assert policy.backoff_base_s == 0.25
    assert policy.delay_s(0) == 0.25
    assert policy.delay_s(10) == 1.0
    assert RetryPolicy.from_env(retries=-3).retries == 0
