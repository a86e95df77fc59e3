from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import pytest

from taskproof.core.completion.orchestrator import CompletionOrchestrator
from taskproof.core.completion.schemas import (
    AlreadyCompleted,
    CompletionFailedError,
    CompletionRejected,
    CompletionSucceeded,
    TaskNotFound,
)
from taskproof.core.evidence.schemas import CompletionEvidence, EvidenceAttachment
from taskproof.core.evidence.validator import RejectionReason
from taskproof.core.extraction.schemas import EvidenceAnalysis, FollowUpProposal
from taskproof.core.extraction.service import ExtractionError, ExtractionTimeout
from taskproof.core.tasks.schemas import TaskCreate
from taskproof.core.tasks.store import TaskStore, TaskStoreError

INVOICE_EVIDENCE = CompletionEvidence(
    description="Sent the revised proposal to Acme and agreed to send the final invoice next Monday after sign-off.",
)
DETAILED_EVIDENCE = CompletionEvidence(
    description="Migrated the billing database to the new schema and verified all 40 client records.",
)


class StubExtraction:
    def __init__(self, analysis: EvidenceAnalysis | None = None, error: Exception | None = None, delay_s: float = 0.0):
        self.analysis = analysis or EvidenceAnalysis()
        self.error = error
        self.delay_s = delay_s
        self.calls: list[tuple[str, str]] = []

    def analyze_evidence(self, description: str, task_title: str, timeout_s: float | None = None) -> EvidenceAnalysis:
        self.calls.append((description, task_title))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.analysis


def _orchestrator(store: TaskStore, extraction: StubExtraction, policy, notifier=None, **kwargs) -> CompletionOrchestrator:
    kwargs.setdefault("follow_ups_enabled", True)
    kwargs.setdefault("follow_up_timeout_s", 2.0)
    return CompletionOrchestrator(store=store, extraction=extraction, policy=policy, notifier=notifier, **kwargs)


def test_short_evidence_is_rejected_and_task_untouched(store, policy, recorder) -> None:
    task = store.create("u1", TaskCreate(title="Send invoice"))
    extraction = StubExtraction()

    outcome = _orchestrator(store, extraction, policy, recorder).complete_task(task.id, CompletionEvidence(description="done"))

    assert isinstance(outcome, CompletionRejected)
    assert outcome.reason is RejectionReason.DESCRIPTION_TOO_SHORT
    assert outcome.guidance
    assert store.get(task.id) == task
    assert extraction.calls == []
    assert recorder.messages[0]["meta"]["type"] == "evidence_rejected"
    assert recorder.messages[0]["meta"]["task_id"] == task.id


def test_detailed_evidence_completes_task(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))

    outcome = _orchestrator(store, StubExtraction(), policy).complete_task(task.id, DETAILED_EVIDENCE)

    assert isinstance(outcome, CompletionSucceeded)
    assert outcome.task.completed is True
    assert outcome.task.status == "completed"
    assert outcome.follow_ups == []
    persisted = store.get(task.id)
    assert persisted.completed is True
    assert persisted.completion_evidence == DETAILED_EVIDENCE


def test_attachment_without_description_is_rejected(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Design mockups"))
    evidence = CompletionEvidence(description="", attachments=[EvidenceAttachment(kind="screenshot", content="s.png")])

    outcome = _orchestrator(store, StubExtraction(), policy).complete_task(task.id, evidence)

    assert isinstance(outcome, CompletionRejected)
    assert outcome.reason is RejectionReason.DESCRIPTION_EMPTY
    assert store.get(task.id).completed is False


def test_missing_evidence_is_rejected(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Design mockups"))
    outcome = _orchestrator(store, StubExtraction(), policy).complete_task(task.id, None)
    assert isinstance(outcome, CompletionRejected)
    assert outcome.reason is RejectionReason.EVIDENCE_MISSING


def test_follow_up_from_evidence_becomes_pending_task(store, policy, recorder) -> None:
    task = store.create("u1", TaskCreate(title="Acme proposal", project_id="proj-1"))
    analysis = EvidenceAnalysis(
        follow_ups=[
            FollowUpProposal(
                title="Send final invoice",
                scheduled_start=datetime(2026, 3, 9, 9, tzinfo=timezone.utc),
                scheduled_end=datetime(2026, 3, 9, 10, tzinfo=timezone.utc),
                priority=4,
            )
        ],
        insights=["Acme signs off on Mondays"],
    )
    extraction = StubExtraction(analysis=analysis)

    outcome = _orchestrator(store, extraction, policy, recorder).complete_task(task.id, INVOICE_EVIDENCE)

    assert isinstance(outcome, CompletionSucceeded)
    assert outcome.task.completed is True
    assert len(outcome.follow_ups) == 1
    follow_up = outcome.follow_ups[0]
    assert follow_up.title == "Send final invoice"
    assert follow_up.status == "pending"
    assert follow_up.completed is False
    assert follow_up.source == "follow_up"
    assert follow_up.origin_task_id == task.id
    assert follow_up.user_id == "u1"
    assert follow_up.project_id == "proj-1"
    assert follow_up.estimated_minutes == 60
    assert outcome.insights == ["Acme signs off on Mondays"]
    assert extraction.calls == [(INVOICE_EVIDENCE.description, "Acme proposal")]
    assert len(store.list_tasks(user_id="u1")) == 2
    assert recorder.messages[-1]["meta"]["type"] == "follow_ups_created"


def test_unknown_task_never_writes(store, policy) -> None:
    outcome = _orchestrator(store, StubExtraction(), policy).complete_task("nope", DETAILED_EVIDENCE)
    assert isinstance(outcome, TaskNotFound)
    assert not store.file_path.exists()


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (ExtractionError("model returned garbage"), "error"),
        (ExtractionTimeout("deadline exceeded"), "timeout"),
        (RuntimeError("unexpected"), "error"),
    ],
)
def test_extraction_failure_keeps_completion(store, policy, error, status) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))

    outcome = _orchestrator(store, StubExtraction(error=error), policy).complete_task(task.id, DETAILED_EVIDENCE)

    assert isinstance(outcome, CompletionSucceeded)
    assert outcome.follow_ups == []
    assert outcome.follow_up_status == status
    assert store.get(task.id).completed is True


def test_slow_extraction_is_abandoned(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))
    extraction = StubExtraction(analysis=EvidenceAnalysis(follow_ups=[FollowUpProposal(title="late")]), delay_s=0.5)

    started = time.monotonic()
    outcome = _orchestrator(store, extraction, policy, follow_up_timeout_s=0.05).complete_task(task.id, DETAILED_EVIDENCE)

    assert time.monotonic() - started < 0.45
    assert isinstance(outcome, CompletionSucceeded)
    assert outcome.follow_up_status == "timeout"
    assert outcome.follow_ups == []
    assert store.get(task.id).completed is True


def test_recompletion_is_refused(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))
    extraction = StubExtraction()
    orchestrator = _orchestrator(store, extraction, policy)
    orchestrator.complete_task(task.id, DETAILED_EVIDENCE)

    other = CompletionEvidence(description="Re-ran the migration script and checked the 40 records again line by line.")
    outcome = orchestrator.complete_task(task.id, other)

    assert isinstance(outcome, AlreadyCompleted)
    assert outcome.reason == "AlreadyCompleted"
    assert store.get(task.id).completion_evidence == DETAILED_EVIDENCE
    assert len(extraction.calls) == 1


def test_store_failure_raises_and_leaves_task_open(store, policy, monkeypatch) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))

    def failing_rewrite(records):
        raise TaskStoreError("disk full")

    monkeypatch.setattr(store, "_rewrite", failing_rewrite)

    with pytest.raises(CompletionFailedError):
        _orchestrator(store, StubExtraction(), policy).complete_task(task.id, DETAILED_EVIDENCE)
    assert store.get(task.id).completed is False


def test_disabled_follow_ups_skip_extraction(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))
    extraction = StubExtraction()

    outcome = _orchestrator(store, extraction, policy, follow_ups_enabled=False).complete_task(task.id, DETAILED_EVIDENCE)

    assert outcome.follow_up_status == "disabled"
    assert extraction.calls == []


def test_notifier_failure_does_not_change_outcome(store, policy) -> None:
    class BrokenNotifier:
        def send(self, title: str, body: str, meta: dict | None = None) -> None:
            raise RuntimeError("sink down")

    task = store.create("u1", TaskCreate(title="Send invoice"))
    outcome = _orchestrator(store, StubExtraction(), policy, BrokenNotifier()).complete_task(
        task.id, CompletionEvidence(description="done")
    )
    assert isinstance(outcome, CompletionRejected)


def test_concurrent_completions_only_one_wins(store, policy) -> None:
    task = store.create("u1", TaskCreate(title="Migrate billing"))
    orchestrator = _orchestrator(store, StubExtraction(), policy, follow_ups_enabled=False)
    barrier = threading.Barrier(4)
    outcomes: list[object] = []

    def worker() -> None:
        barrier.wait()
        outcomes.append(orchestrator.complete_task(task.id, DETAILED_EVIDENCE))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(isinstance(item, CompletionSucceeded) for item in outcomes) == 1
    assert sum(isinstance(item, AlreadyCompleted) for item in outcomes) == 3
