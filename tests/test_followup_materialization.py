from __future__ import annotations

from datetime import datetime, timezone

from taskproof.core.completion.followups import follow_up_skip_reason, materialize_follow_ups
from taskproof.core.extraction.schemas import FollowUpProposal
from taskproof.core.tasks.schemas import TaskCreate

MONDAY_9 = datetime(2026, 3, 9, 9, tzinfo=timezone.utc)
MONDAY_10 = datetime(2026, 3, 9, 10, tzinfo=timezone.utc)


def test_skip_reasons() -> None:
    assert follow_up_skip_reason(FollowUpProposal(title="ok", scheduled_start=MONDAY_9, scheduled_end=MONDAY_10)) is None
    assert (
        follow_up_skip_reason(FollowUpProposal(title="reversed", scheduled_start=MONDAY_10, scheduled_end=MONDAY_9))
        == "end_before_start"
    )
    assert follow_up_skip_reason(FollowUpProposal(title="zero", estimated_minutes=0)) == "non_positive_duration"
    assert follow_up_skip_reason(FollowUpProposal(title="negative", estimated_minutes=-15)) == "non_positive_duration"
    mixed = FollowUpProposal(title="mixed", scheduled_start=datetime(2026, 3, 9, 9), scheduled_end=MONDAY_10)
    assert follow_up_skip_reason(mixed) == "malformed_schedule"


def test_bad_proposals_do_not_fail_the_batch(store) -> None:
    origin = store.create("u1", TaskCreate(title="Quarterly review"))
    proposals = [
        FollowUpProposal(title="Book venue", estimated_minutes=30),
        FollowUpProposal(title="Backwards", scheduled_start=MONDAY_10, scheduled_end=MONDAY_9),
        FollowUpProposal(title="Email agenda", scheduled_start=MONDAY_9, scheduled_end=MONDAY_10, priority=9),
    ]

    report = materialize_follow_ups(store, origin, proposals)

    assert [task.title for task in report.created] == ["Book venue", "Email agenda"]
    assert report.skipped == [{"title": "Backwards", "reason": "end_before_start"}]
    assert report.created[1].priority == 5
    assert report.created[1].estimated_minutes == 60
    assert all(task.origin_task_id == origin.id for task in report.created)


def test_missing_duration_without_window_stays_empty(store) -> None:
    origin = store.create("u1", TaskCreate(title="Quarterly review"))
    report = materialize_follow_ups(store, origin, [FollowUpProposal(title="Call back")])
    assert report.created[0].estimated_minutes is None


def test_duplicate_titles_are_not_deduplicated(store) -> None:
    origin = store.create("u1", TaskCreate(title="Quarterly review"))
    store.create("u1", TaskCreate(title="Call back"))

    report = materialize_follow_ups(store, origin, [FollowUpProposal(title="Call back"), FollowUpProposal(title="Call back")])

    assert len(report.created) == 2
    assert sum(task.title == "Call back" for task in store.list_tasks(user_id="u1")) == 3
