from __future__ import annotations

from datetime import date as date_type
from typing import Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from taskproof.core.completion.orchestrator import CompletionOrchestrator
from taskproof.core.completion.schemas import (
    AlreadyCompleted,
    CompletionFailedError,
    CompletionRejected,
    CompletionSucceeded,
    TaskNotFound,
)
from taskproof.core.evidence.schemas import CompletionEvidence
from taskproof.core.extraction.schemas import CompletionChallenge
from taskproof.core.extraction.service import ExtractionError, ExtractionService
from taskproof.core.intake.service import IntakeResult, TaskIntake
from taskproof.core.tasks.schemas import Task, TaskCreate, TaskListResponse, TaskUpdate
from taskproof.core.tasks.store import TaskNotFoundError, TaskStore, TaskStoreError

from .deps import (
    get_completion_orchestrator,
    get_current_user_id,
    get_extraction_service,
    get_task_intake,
    get_task_store,
)

router = APIRouter()


class MessageRequest(BaseModel):
    message: str


def _parse_day(value: str | None) -> date_type | None:
    if not value:
        return None
    try:
        return date_type.fromisoformat(value[:10])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD") from exc


def _get_or_404(store: TaskStore, task_id: str) -> Task:
    task = store.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"task not found: {task_id}")
    return task


@router.get("", response_model=TaskListResponse)
def list_tasks(
    date: str | None = Query(default=None),
    status: Literal["pending", "in_progress", "completed", "blocked"] | None = Query(default=None),
    completed: bool | None = Query(default=None),
    store: TaskStore = Depends(get_task_store),
    user_id: str = Depends(get_current_user_id),
) -> TaskListResponse:
    return TaskListResponse(tasks=store.list_tasks(user_id=user_id, day=_parse_day(date), status=status, completed=completed))


@router.post("", response_model=Task, status_code=201)
def create_task(
    request: TaskCreate,
    store: TaskStore = Depends(get_task_store),
    user_id: str = Depends(get_current_user_id),
) -> Task:
    try:
        return store.create(user_id=user_id, data=request)
    except TaskStoreError as exc:
        raise HTTPException(status_code=503, detail="task could not be saved, try again") from exc


@router.post("/from-message", response_model=IntakeResult)
def create_from_message(
    request: MessageRequest,
    intake: TaskIntake = Depends(get_task_intake),
    user_id: str = Depends(get_current_user_id),
) -> IntakeResult:
    try:
        return intake.create_from_message(request.message, user_id=user_id)
    except ExtractionError as exc:
        raise HTTPException(status_code=503, detail="task extraction unavailable") from exc


@router.get("/{task_id}", response_model=Task)
def get_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> Task:
    return _get_or_404(store, task_id)


@router.patch("/{task_id}", response_model=Task)
def update_task(task_id: str, request: TaskUpdate, store: TaskStore = Depends(get_task_store)) -> Task:
    fields = request.model_dump(exclude_unset=True)

    if fields.get("completed") is True or fields.get("status") == "completed":
        raise HTTPException(
            status_code=409,
            detail=f"completion requires evidence: POST /tasks/{task_id}/complete",
        )

    try:
        return store.edit(task_id, fields)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"task not found: {task_id}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc).splitlines()[0]) from exc
    except TaskStoreError as exc:
        raise HTTPException(status_code=503, detail="task could not be saved, try again") from exc


@router.delete("/{task_id}")
def delete_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> dict[str, str]:
    if not store.delete(task_id):
        raise HTTPException(status_code=404, detail=f"task not found: {task_id}")
    return {"status": "deleted", "task_id": task_id}


@router.post(
    "/{task_id}/complete",
    response_model=CompletionSucceeded,
    responses={404: {}, 409: {"model": AlreadyCompleted}, 422: {"model": CompletionRejected}, 503: {}},
)
def complete_task(
    task_id: str,
    evidence: CompletionEvidence | None = Body(default=None),
    orchestrator: CompletionOrchestrator = Depends(get_completion_orchestrator),
):
    try:
        outcome = orchestrator.complete_task(task_id, evidence)
    except CompletionFailedError as exc:
        raise HTTPException(status_code=503, detail="completion failed, try again") from exc

    if isinstance(outcome, TaskNotFound):
        raise HTTPException(status_code=404, detail=f"task not found: {task_id}")
    if isinstance(outcome, CompletionRejected):
        return JSONResponse(status_code=422, content=outcome.model_dump(mode="json"))
    if isinstance(outcome, AlreadyCompleted):
        return JSONResponse(status_code=409, content=outcome.model_dump(mode="json"))
    return outcome


@router.get("/{task_id}/challenge", response_model=CompletionChallenge)
def challenge_completion(
    task_id: str,
    store: TaskStore = Depends(get_task_store),
    extraction: ExtractionService = Depends(get_extraction_service),
) -> CompletionChallenge:
    task = _get_or_404(store, task_id)
    return extraction.challenge_completion(
        title=task.title,
        description=task.description,
        priority=task.priority,
        estimated_minutes=task.estimated_minutes,
    )
