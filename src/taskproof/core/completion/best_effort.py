from __future__ import annotations

import contextvars
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Generic, Literal, TypeVar

from taskproof.core.extraction.service import ExtractionTimeout

T = TypeVar("T")

logger = logging.getLogger("taskproof.best_effort")

_EXECUTOR = ThreadPoolExecutor(
    max_workers=max(1, int(os.getenv("TASKPROOF_BEST_EFFORT_WORKERS", "4"))),
    thread_name_prefix="taskproof-best-effort",
)


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    status: Literal["ok", "timeout", "error"]
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def call_best_effort(fn: Callable[[], T], timeout_s: float, name: str) -> CallOutcome[T]:
    """Run ``fn`` once with a deadline and report how it went instead of raising.

    A call that overruns is abandoned: its worker thread may still finish, but
    the result is discarded.
    """
    ctx = contextvars.copy_context()
    future = _EXECUTOR.submit(ctx.run, fn)
    try:
        value = future.result(timeout=max(0.01, timeout_s))
    except FutureTimeoutError:
        future.cancel()
        logger.warning("best-effort call timed out", extra={"extra_fields": {"call": name, "timeout_s": timeout_s}})
        return CallOutcome(status="timeout", error=f"{name} exceeded {timeout_s}s")
    except ExtractionTimeout as exc:
        logger.warning("best-effort call timed out", extra={"extra_fields": {"call": name, "error": str(exc)}})
        return CallOutcome(status="timeout", error=str(exc))
    except Exception as exc:  # noqa: BLE001 - failures of the side call never cross into the caller
        logger.warning(
            "best-effort call failed",
            exc_info=True,
            extra={"extra_fields": {"call": name, "error": str(exc)}},
        )
        return CallOutcome(status="error", error=f"{exc.__class__.__name__}: {exc}")
    return CallOutcome(status="ok", value=value)
