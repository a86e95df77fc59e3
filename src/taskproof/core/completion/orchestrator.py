from __future__ import annotations

import logging
import os

from taskproof.core.evidence.policy import EvidencePolicy, get_evidence_policy
from taskproof.core.evidence.schemas import CompletionEvidence
from taskproof.core.evidence.validator import validate_evidence
from taskproof.core.extraction.schemas import EvidenceAnalysis
from taskproof.core.extraction.service import ExtractionService
from taskproof.core.logging.context import log_context
from taskproof.core.models.llm_provider import TaskproofLLM
from taskproof.core.notifications.notifier import Notifier
from taskproof.core.tasks.schemas import Task
from taskproof.core.tasks.store import TaskAlreadyCompletedError, TaskNotFoundError, TaskStore, TaskStoreError

from .best_effort import CallOutcome, call_best_effort
from .followups import materialize_follow_ups
from .schemas import (
    AlreadyCompleted,
    CompletionFailedError,
    CompletionOutcome,
    CompletionRejected,
    CompletionSucceeded,
    TaskNotFound,
)

logger = logging.getLogger("taskproof.completion")


class CompletionOrchestrator:
    """Runs the evidence-gated completion of a single task.

    Validation and the store write form the transaction. Follow-up mining runs
    afterwards, once, under a deadline, and can only add to the result.
    """

    def __init__(
        self,
        store: TaskStore,
        extraction: ExtractionService | None = None,
        policy: EvidencePolicy | None = None,
        notifier: Notifier | None = None,
        follow_up_timeout_s: float | None = None,
        follow_ups_enabled: bool | None = None,
    ) -> None:
        self.store = store
        self.extraction = extraction or ExtractionService()
        self.policy = policy or get_evidence_policy()
        self.notifier = notifier
        self.follow_up_timeout_s = (
            follow_up_timeout_s
            if follow_up_timeout_s is not None
            else float(os.getenv("TASKPROOF_FOLLOWUP_TIMEOUT_S", "20"))
        )
        self.follow_ups_enabled = (
            follow_ups_enabled
            if follow_ups_enabled is not None
            else TaskproofLLM.feature_enabled("TASKPROOF_LLM_FOLLOWUPS")
        )

    def complete_task(self, task_id: str, evidence: CompletionEvidence | None) -> CompletionOutcome:
        with log_context(task_id=task_id):
            task = self.store.get(task_id)
            if task is None:
                logger.info("completion for unknown task")
                return TaskNotFound(task_id=task_id)
            if task.completed:
                logger.info("completion for already completed task")
                return AlreadyCompleted(task=task)

            result = validate_evidence(evidence, self.policy)
            if not result.accepted:
                logger.info(
                    "evidence rejected",
                    extra={"extra_fields": {"reason": result.reason.value if result.reason else None}},
                )
                self._notify(
                    title=f'Evidence needed for "{task.title}"',
                    body=result.guidance or "",
                    meta={"type": "evidence_rejected", "user_id": task.user_id, "task_id": task.id, "priority": 3},
                )
                return CompletionRejected(task_id=task_id, reason=result.reason, guidance=result.guidance or "")

            try:
                completed = self.store.mark_completed(task_id, evidence)
            except TaskNotFoundError:
                return TaskNotFound(task_id=task_id)
            except TaskAlreadyCompletedError as exc:
                return AlreadyCompleted(task=exc.task)
            except (TaskStoreError, ValueError) as exc:
                logger.error("completion write failed", exc_info=True)
                raise CompletionFailedError(task_id, str(exc)) from exc

            logger.info(
                "task completed",
                extra={"extra_fields": {"attachments": len(evidence.attachments)}},
            )
            return self._enrich(completed, evidence)

    def _enrich(self, task: Task, evidence: CompletionEvidence) -> CompletionSucceeded:
        if not self.follow_ups_enabled:
            return CompletionSucceeded(task=task, follow_up_status="disabled")

        outcome: CallOutcome[EvidenceAnalysis] = call_best_effort(
            lambda: self.extraction.analyze_evidence(
                evidence.description.strip(),
                task.title,
                timeout_s=self.follow_up_timeout_s,
            ),
            timeout_s=self.follow_up_timeout_s,
            name="analyze_evidence",
        )
        if not outcome.ok or outcome.value is None:
            return CompletionSucceeded(task=task, follow_up_status=outcome.status)

        analysis = outcome.value
        report = materialize_follow_ups(self.store, task, analysis.follow_ups)
        skipped = report.skipped + [
            {"title": str(raw.get("title") or ""), "reason": "malformed_proposal"} for raw in analysis.rejected_raw
        ]
        if skipped:
            logger.info("follow-ups skipped", extra={"extra_fields": {"skipped": skipped}})

        if report.created:
            titles = "\n".join(f"- {item.title}" for item in report.created)
            self._notify(
                title=f'{len(report.created)} follow-up task(s) from "{task.title}"',
                body=titles,
                meta={"type": "follow_ups_created", "user_id": task.user_id, "task_id": task.id, "priority": 2},
            )

        return CompletionSucceeded(
            task=task,
            follow_ups=report.created,
            insights=analysis.insights,
            follow_up_status="ok",
            skipped_follow_ups=skipped,
        )

    def _notify(self, title: str, body: str, meta: dict) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(title=title, body=body, meta=meta)
        except Exception:  # noqa: BLE001 - a failed notification never changes the completion outcome
            logger.warning("notification send failed", exc_info=True)
