from __future__ import annotations

from datetime import datetime, timezone

import pytest

from taskproof.core.extraction.service import (
    RESCHEDULE_FALLBACK_MESSAGE,
    ExtractionError,
    ExtractionService,
    ExtractionTimeout,
)
from taskproof.core.models.llm_provider import LLMOutputError, LLMTimeout, LLMUnavailable
from taskproof.core.tasks.schemas import Task

FIXED_NOW = datetime(2026, 3, 3, 12, 0, tzinfo=timezone.utc)


class StubLLM:
    def __init__(self, payload: dict | None = None, error: Exception | None = None) -> None:
        self.payload = payload or {}
        self.error = error
        self.calls: list[dict] = []

    def complete_json(self, system: str, user: str, schema_hint: dict | None = None, **kwargs) -> dict:
        self.calls.append({"system": system, "user": user, **kwargs})
        if self.error is not None:
            raise self.error
        return self.payload


def _service(llm: StubLLM) -> ExtractionService:
    return ExtractionService(llm=llm, clock=lambda: FIXED_NOW)


def test_analyze_evidence_parses_follow_ups_and_keeps_bad_rows() -> None:
    llm = StubLLM(
        {
            "followUpTasks": [
                {"title": "Send final invoice", "scheduled_start": "2026-03-09T09:00:00Z", "priority": "4"},
                {"title": "", "priority": 2},
                {"title": "Broken date", "scheduled_start": "next monday"},
                "not an object",
            ],
            "insights": ["Client prefers Monday billing", ""],
        }
    )

    analysis = _service(llm).analyze_evidence("evidence text", "Acme proposal", timeout_s=5)

    assert [item.title for item in analysis.follow_ups] == ["Send final invoice"]
    assert analysis.follow_ups[0].priority == 4
    assert len(analysis.rejected_raw) == 2
    assert analysis.insights == ["Client prefers Monday billing"]
    assert llm.calls[0]["attempts"] == 1
    assert llm.calls[0]["timeout_s"] == 5
    assert "Acme proposal" in llm.calls[0]["user"]
    assert FIXED_NOW.isoformat() in llm.calls[0]["user"]


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (LLMUnavailable("off"), ExtractionError),
        (LLMOutputError("garbage"), ExtractionError),
        (LLMTimeout("slow"), ExtractionTimeout),
    ],
)
def test_llm_errors_map_to_extraction_errors(error, expected) -> None:
    with pytest.raises(expected):
        _service(StubLLM(error=error)).analyze_evidence("evidence text", "Acme proposal")


def test_follow_ups_must_be_a_list() -> None:
    with pytest.raises(ExtractionError):
        _service(StubLLM({"follow_ups": "call Bob"})).analyze_evidence("evidence text", "Acme proposal")


def test_extract_task_returns_none_for_chatter() -> None:
    assert _service(StubLLM({"is_task": False})).extract_task("thanks, talk tomorrow") is None


def test_extract_task_builds_proposal() -> None:
    proposal = _service(
        StubLLM(
            {
                "is_task": True,
                "scenario": "complex",
                "title": "Migrate CRM",
                "estimated_minutes": 480,
                "priority": 7,
                "missing_info": {"needs_due_date": True, "required_questions": ["When is the cutover?"]},
            }
        )
    ).extract_task("we need to move the CRM to the new vendor")

    assert proposal.title == "Migrate CRM"
    assert proposal.is_complex is True
    assert proposal.priority == 5
    assert proposal.missing_info.any_missing is True


def test_extract_task_with_unusable_payload_raises() -> None:
    with pytest.raises(ExtractionError):
        _service(StubLLM({"is_task": True, "title": ""})).extract_task("do the thing")


def test_break_down_task_sums_minutes() -> None:
    breakdown = _service(
        StubLLM(
            {
                "subtasks": [
                    {"title": "Export data", "estimated_minutes": 45},
                    {"title": "Import data", "estimated_minutes": 90},
                ],
                "recommendations": ["Schedule the import after hours"],
            }
        )
    ).break_down_task("Migrate CRM", 120)

    assert [item.title for item in breakdown.subtasks] == ["Export data", "Import data"]
    assert breakdown.total_minutes == 135
    assert breakdown.fallback is False


def test_break_down_task_falls_back_when_llm_is_off() -> None:
    breakdown = _service(StubLLM(error=LLMUnavailable("off"))).break_down_task("Migrate CRM", 90)

    assert breakdown.fallback is True
    assert [item.title for item in breakdown.subtasks] == ["Complete task"]
    assert breakdown.total_minutes == 90


def test_break_down_task_falls_back_on_invalid_subtasks() -> None:
    breakdown = _service(StubLLM({"subtasks": [{"title": "x", "estimated_minutes": 0}]})).break_down_task("Migrate CRM")
    assert breakdown.fallback is True
    assert breakdown.total_minutes == 60


def test_challenge_completion_fallback_wording() -> None:
    challenge = _service(StubLLM(error=LLMUnavailable("off"))).challenge_completion("Quarterly report")
    assert "Quarterly report" in challenge.challenge
    assert len(challenge.questions) == 3


def test_non_list_insights_are_dropped_not_split() -> None:
    analysis = _service(StubLLM({"follow_ups": [], "insights": "client was happy"})).analyze_evidence(
        "evidence text", "Acme proposal"
    )
    assert analysis.insights == []


def _task(task_id: str, title: str) -> Task:
    return Task(id=task_id, user_id="u1", title=title, estimated_minutes=30, created_at_iso="a", updated_at_iso="a")


def test_reschedule_keeps_only_known_tasks() -> None:
    llm = StubLLM(
        {
            "suggestions": [
                {"taskId": "t1", "newScheduledStart": "2026-03-04T09:00:00Z", "reason": "revenue first"},
                {"task_id": "t2", "new_scheduled_start": "2026-03-04T11:00:00Z"},
                {"task_id": "other", "new_scheduled_start": "2026-03-04T13:00:00Z"},
                {"task_id": "t2", "new_scheduled_start": "not a time"},
                "move everything",
            ],
            "message": "Moved both to tomorrow morning.",
        }
    )

    plan = _service(llm).reschedule("client call ran long", [_task("t1", "Send quote"), _task("t2", "Review deck")])

    assert [item.task_id for item in plan.suggestions] == ["t1", "t2"]
    assert plan.suggestions[0].new_scheduled_start == datetime(2026, 3, 4, 9, tzinfo=timezone.utc)
    assert plan.suggestions[0].reason == "revenue first"
    assert plan.message == "Moved both to tomorrow morning."
    assert plan.fallback is False
    assert "Send quote" in llm.calls[0]["user"]
    assert "client call ran long" in llm.calls[0]["user"]


@pytest.mark.parametrize("llm", [StubLLM(error=LLMUnavailable("off")), StubLLM({"suggestions": "later"})])
def test_reschedule_falls_back_to_empty_plan(llm: StubLLM) -> None:
    plan = _service(llm).reschedule("sick day", [_task("t1", "Send quote")])

    assert plan.suggestions == []
    assert plan.message == RESCHEDULE_FALLBACK_MESSAGE
    assert plan.fallback is True
