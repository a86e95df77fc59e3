from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import BaseModel, Field

from taskproof.core.extraction.schemas import TaskBreakdown, TaskProposal
from taskproof.core.extraction.service import ExtractionService
from taskproof.core.tasks.schemas import Task, TaskCreate
from taskproof.core.tasks.store import TaskStore

logger = logging.getLogger("taskproof.intake")

SUBTASK_SPACING = timedelta(hours=2)


class IntakeResult(BaseModel):
    is_task: bool
    proposal: TaskProposal | None = None
    task: Task | None = None
    subtasks: list[Task] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class TaskIntake:
    """Turns a chat message into stored tasks.

    Incomplete proposals are bounced back as questions instead of being saved.
    Complex work becomes a project task plus one subtask per breakdown item.
    """

    def __init__(self, store: TaskStore, extraction: ExtractionService | None = None) -> None:
        self.store = store
        self.extraction = extraction or ExtractionService()

    def create_from_message(self, message: str, user_id: str) -> IntakeResult:
        proposal = self.extraction.extract_task(message)
        if proposal is None:
            return IntakeResult(is_task=False)

        if proposal.missing_info is not None and proposal.missing_info.any_missing:
            questions = proposal.missing_info.required_questions or ["What is the deadline and the concrete deliverable?"]
            return IntakeResult(is_task=True, proposal=proposal, questions=questions)

        if not proposal.is_complex:
            task = self.store.create(user_id=user_id, data=self._task_from_proposal(proposal, source="message"))
            logger.info("task created from message", extra={"extra_fields": {"task_id": task.id}})
            return IntakeResult(is_task=True, proposal=proposal, task=task)

        breakdown = self.extraction.break_down_task(proposal.description or proposal.title, proposal.estimated_minutes)
        project = self.store.create(
            user_id=user_id,
            data=self._task_from_proposal(
                proposal,
                source="message",
                title=f"{proposal.title} (Project)",
                description=(
                    f"{proposal.description or proposal.title}\n\n"
                    f"This project has been broken down into {len(breakdown.subtasks)} subtasks."
                ),
            ),
        )
        subtasks = self._create_subtasks(project, proposal, breakdown, user_id)
        logger.info(
            "project created from message",
            extra={"extra_fields": {"task_id": project.id, "subtasks": len(subtasks)}},
        )
        return IntakeResult(
            is_task=True,
            proposal=proposal,
            task=project,
            subtasks=subtasks,
            recommendations=breakdown.recommendations,
        )

    def _task_from_proposal(
        self,
        proposal: TaskProposal,
        source: str,
        title: str | None = None,
        description: str | None = None,
    ) -> TaskCreate:
        start, end = proposal.scheduled_start, proposal.scheduled_end
        if start is not None and end is not None and end < start:
            end = None
        return TaskCreate(
            title=title or proposal.title,
            description=description if description is not None else proposal.description,
            priority=proposal.priority,
            estimated_minutes=proposal.estimated_minutes,
            scheduled_start=start,
            scheduled_end=end,
            source=source,
        )

    def _create_subtasks(self, project: Task, proposal: TaskProposal, breakdown: TaskBreakdown, user_id: str) -> list[Task]:
        created: list[Task] = []
        for index, item in enumerate(breakdown.subtasks):
            start = proposal.scheduled_start + SUBTASK_SPACING * index if proposal.scheduled_start else None
            end = start + timedelta(minutes=item.estimated_minutes) if start else None
            created.append(
                self.store.create(
                    user_id=user_id,
                    data=TaskCreate(
                        title=item.title,
                        description=item.description,
                        project_id=project.id,
                        priority=item.priority,
                        estimated_minutes=item.estimated_minutes,
                        scheduled_start=start,
                        scheduled_end=end,
                        source="breakdown",
                        origin_task_id=project.id,
                    ),
                )
            )
        return created
