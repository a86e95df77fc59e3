from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from taskproof.core.extraction.schemas import ReschedulePlan, TaskBreakdown, TaskProposal
from taskproof.core.extraction.service import ExtractionError, ExtractionService
from taskproof.core.tasks.store import TaskStore

from .deps import get_extraction_service, get_task_store

router = APIRouter()


class BreakDownRequest(BaseModel):
    task_description: str = Field(min_length=1)
    estimated_minutes: int | None = Field(default=None, ge=1)


class TaskDetectionRequest(BaseModel):
    message: str = Field(min_length=1)


class TaskDetectionResponse(BaseModel):
    input: str
    is_task: bool
    detected: TaskProposal | None = None


class RescheduleRequest(BaseModel):
    reason: str = Field(min_length=1)
    task_ids: list[str] = Field(min_length=1)


@router.post("/break-down-task", response_model=TaskBreakdown)
def break_down_task(
    request: BreakDownRequest,
    extraction: ExtractionService = Depends(get_extraction_service),
) -> TaskBreakdown:
    return extraction.break_down_task(request.task_description, request.estimated_minutes)


@router.post("/task-detection", response_model=TaskDetectionResponse)
def detect_task(
    request: TaskDetectionRequest,
    extraction: ExtractionService = Depends(get_extraction_service),
) -> TaskDetectionResponse:
    try:
        proposal = extraction.extract_task(request.message)
    except ExtractionError as exc:
        raise HTTPException(status_code=503, detail="task extraction unavailable") from exc
    return TaskDetectionResponse(input=request.message, is_task=proposal is not None, detected=proposal)


@router.post("/reschedule", response_model=ReschedulePlan)
def reschedule(
    request: RescheduleRequest,
    store: TaskStore = Depends(get_task_store),
    extraction: ExtractionService = Depends(get_extraction_service),
) -> ReschedulePlan:
    tasks = []
    for task_id in dict.fromkeys(request.task_ids):
        task = store.get(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"task not found: {task_id}")
        tasks.append(task)
    return extraction.reschedule(request.reason, tasks)
