from __future__ import annotations

import time

from taskproof.core.completion.best_effort import call_best_effort
from taskproof.core.logging.context import get_log_context, log_context


def test_ok_outcome_carries_value() -> None:
    outcome = call_best_effort(lambda: 42, timeout_s=1.0, name="answer")
    assert outcome.ok
    assert outcome.value == 42


def test_exception_becomes_error_outcome() -> None:
    def boom() -> int:
        raise ValueError("bad payload")

    outcome = call_best_effort(boom, timeout_s=1.0, name="boom")
    assert outcome.status == "error"
    assert "bad payload" in outcome.error


def test_overrun_becomes_timeout_outcome() -> None:
    outcome = call_best_effort(lambda: time.sleep(0.3), timeout_s=0.02, name="slow")
    assert outcome.status == "timeout"
    assert outcome.value is None


def test_log_context_reaches_worker_thread() -> None:
    with log_context(task_id="t-7"):
        outcome = call_best_effort(get_log_context, timeout_s=1.0, name="ctx")
    assert outcome.value["task_id"] == "t-7"
