from __future__ import annotations

import json

SYSTEM_PROMPT = (
    "You are an accountability coach for a small business owner. "
    "You turn vague intentions into specific, scheduled, verifiable tasks."
)


def extraction_user_prompt(message: str, now_iso: str) -> str:
    schema = {
        "is_task": True,
        "scenario": "simple|complex|priority_critical",
        "title": "Brief task title",
        "description": "Detailed description",
        "scheduled_start": "ISO timestamp or null",
        "scheduled_end": "ISO timestamp or null",
        "estimated_minutes": 60,
        "priority": 3,
        "business_context": "why this priority/complexity",
        "missing_info": {
            "needs_due_date": False,
            "needs_requirements": False,
            "needs_priority": False,
            "needs_timeline": False,
            "required_questions": ["What's the deadline?"],
        },
    }
    return (
        f"Current time: {now_iso}\n"
        f"Message: {message!r}\n\n"
        "Classify whether the message asks for work to be done.\n"
        "simple: single action under two hours (a call, one document, a quick fix).\n"
        "complex: several phases or over two hours (migrations, rollouts, overhauls).\n"
        "priority_critical: urgent deadline or critical business need.\n"
        "Priority scale: 5 urgent, 4 important with tight timeline, 3 standard, 2 maintenance, 1 nice-to-have.\n"
        "Flag missing due date, requirements, priority or timeline and ask for them.\n"
        'If the message is not a task return {"is_task": false}.\n'
        f"Otherwise return JSON shaped like:\n{json.dumps(schema, ensure_ascii=False)}\n"
    )


def breakdown_user_prompt(description: str, estimated_minutes: int | None) -> str:
    schema = {
        "subtasks": [
            {
                "title": "Clear, actionable title",
                "description": "What needs to be done",
                "estimated_minutes": 30,
                "priority": 3,
            }
        ],
        "total_minutes": 30,
        "recommendations": ["tip"],
    }
    estimate = f"{estimated_minutes} minutes" if estimated_minutes else "not specified"
    return (
        f"Task: {description}\n"
        f"Estimated time: {estimate}\n\n"
        "Break the task into 15-45 minute subtasks in a logical order with realistic estimates.\n"
        f"Return JSON shaped like:\n{json.dumps(schema, ensure_ascii=False)}\n"
    )


def evidence_analysis_user_prompt(evidence: str, task_title: str, now_iso: str) -> str:
    schema = {
        "follow_ups": [
            {
                "title": "Clear, actionable task title",
                "description": "What needs to be done",
                "scheduled_start": "ISO timestamp",
                "scheduled_end": "ISO timestamp",
                "estimated_minutes": 30,
                "priority": 3,
            }
        ],
        "insights": ["observation about the completion"],
    }
    return (
        f"Current time: {now_iso}\n"
        f"Original task: {task_title}\n"
        f"Completion evidence: {evidence}\n\n"
        "Find follow-up work the evidence commits to: future actions or deadlines "
        "(\"finalizing tomorrow\", \"follow up next week\"), pending dependencies "
        "(\"waiting for client approval\", \"need to send contract\") and dates mentioned.\n"
        "Default the start to the next business day when no date is given.\n"
        "Only actionable follow-ups; no generic status checks.\n"
        f"Return JSON shaped like:\n{json.dumps(schema, ensure_ascii=False)}\n"
    )


def challenge_user_prompt(title: str, description: str | None, priority: int, estimated_minutes: int | None) -> str:
    schema = {"challenge": "direct question", "questions": ["..."], "concerns": ["..."]}
    details = f"Description: {description}\n" if description else ""
    return (
        f"The user wants to mark \"{title}\" complete (priority {priority}/5, "
        f"estimate {estimated_minutes or 'unknown'} minutes).\n"
        f"{details}"
        "Ask for evidence of completion, quality checks and the next step without being annoying.\n"
        f"Return JSON shaped like:\n{json.dumps(schema, ensure_ascii=False)}\n"
    )


def reschedule_user_prompt(reason: str, tasks: list[dict], now_iso: str) -> str:
    schema = {
        "suggestions": [{"task_id": "id from the list", "new_scheduled_start": "ISO timestamp", "reason": "why this slot"}],
        "message": "short note to the user",
    }
    return (
        f"Current time: {now_iso}\n"
        f"Reason for rescheduling: {reason}\n"
        f"Affected tasks:\n{json.dumps(tasks, ensure_ascii=False, indent=2)}\n\n"
        "Propose new start times. Keep revenue-generating work first, respect dependencies "
        "between tasks and leave buffers between them. Avoid heavy work late in the day "
        "and do not overload tomorrow.\n"
        f"Return JSON shaped like:\n{json.dumps(schema, ensure_ascii=False)}\n"
    )


def coach_system_prompt(today_tasks: list[str], pending_notifications: int, recent_messages: list[str], created_task: str | None) -> str:
    lines = [
        SYSTEM_PROMPT,
        "Keep replies short and direct. Push for specific deadlines and visible proof of progress.",
        f"Today's tasks: {', '.join(today_tasks) if today_tasks else 'none scheduled'}",
        f"Pending notifications: {pending_notifications}",
    ]
    if recent_messages:
        lines.append("Recent conversation:\n" + "\n".join(recent_messages))
    if created_task:
        lines.append(f"A task was just created from the user's message: {created_task}. Confirm it and ask for the first step.")
    return "\n".join(lines)
