from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from types import MappingProxyType
from typing import Iterator, Mapping

# Fields a log line may inherit from the surrounding request, job or completion.
LOG_CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "user_id", "task_id", "job_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_bound: ContextVar[Mapping[str, str]] = ContextVar("taskproof_log_context", default=_EMPTY)


def bind_log_context(**fields: str | None) -> Token[Mapping[str, str]]:
    """Layer ``fields`` over the current context and return the token to undo it.

    ``None`` values and names outside ``LOG_CONTEXT_FIELDS`` are ignored, so an
    inner binding only overrides what it actually sets.
    """
    merged = dict(_bound.get())
    for name, value in fields.items():
        if value is not None and name in LOG_CONTEXT_FIELDS:
            merged[name] = value
    return _bound.set(MappingProxyType(merged))


def unbind_log_context(token: Token[Mapping[str, str]]) -> None:
    _bound.reset(token)


@contextmanager
def log_context(
    correlation_id: str | None = None,
    task_id: str | None = None,
    user_id: str | None = None,
    job_id: str | None = None,
) -> Iterator[None]:
    token = bind_log_context(correlation_id=correlation_id, task_id=task_id, user_id=user_id, job_id=job_id)
    try:
        yield
    finally:
        unbind_log_context(token)


def get_log_context() -> dict[str, str]:
    return dict(_bound.get())
