from __future__ import annotations

import logging
from dataclasses import dataclass, field

from taskproof.core.extraction.schemas import FollowUpProposal
from taskproof.core.tasks.schemas import Task, TaskCreate
from taskproof.core.tasks.store import TaskStore, TaskStoreError

logger = logging.getLogger("taskproof.followups")


@dataclass
class MaterializedFollowUps:
    created: list[Task] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)


def follow_up_skip_reason(proposal: FollowUpProposal) -> str | None:
    start, end = proposal.scheduled_start, proposal.scheduled_end
    if start is not None and end is not None:
        try:
            if end < start:
                return "end_before_start"
        except TypeError:
            # One side carries a timezone and the other does not.
            return "malformed_schedule"
    if proposal.estimated_minutes is not None and proposal.estimated_minutes <= 0:
        return "non_positive_duration"
    return None


def _estimated_minutes(proposal: FollowUpProposal) -> int | None:
    if proposal.estimated_minutes is not None:
        return proposal.estimated_minutes
    if proposal.scheduled_start is not None and proposal.scheduled_end is not None:
        minutes = int((proposal.scheduled_end - proposal.scheduled_start).total_seconds() // 60)
        return minutes or None
    return None


def materialize_follow_ups(store: TaskStore, origin: Task, proposals: list[FollowUpProposal]) -> MaterializedFollowUps:
    """Create a pending task per acceptable proposal.

    Bad proposals are skipped one by one; the rest of the batch still lands.
    """
    report = MaterializedFollowUps()
    for proposal in proposals:
        reason = follow_up_skip_reason(proposal)
        if reason is not None:
            report.skipped.append({"title": proposal.title, "reason": reason})
            continue
        try:
            created = store.create(
                user_id=origin.user_id,
                data=TaskCreate(
                    title=proposal.title,
                    description=proposal.description,
                    project_id=origin.project_id,
                    status="pending",
                    priority=proposal.priority,
                    estimated_minutes=_estimated_minutes(proposal),
                    scheduled_start=proposal.scheduled_start,
                    scheduled_end=proposal.scheduled_end,
                    source="follow_up",
                    origin_task_id=origin.id,
                ),
            )
        except (TaskStoreError, ValueError) as exc:
            logger.warning("follow-up not stored", extra={"extra_fields": {"title": proposal.title, "error": str(exc)}})
            report.skipped.append({"title": proposal.title, "reason": "store_error"})
            continue
        report.created.append(created)
    return report
