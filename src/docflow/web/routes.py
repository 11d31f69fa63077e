"""JSON API routes.

Each endpoint maps onto one workspace operation.  The acting actor is
taken from the request body or query string; authentication is left to
whatever fronts this API.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..collab.workspace import Workspace
from ..config.settings import settings
from ..core.errors import ErrorKind, WorkflowError
from ..core.models import (
    Decision,
    DocumentState,
    DocumentStatus,
    ResolutionStrategy,
    ReviewRecord,
    ReviewStage,
    Revision,
    SaveResult,
    TaskAssignment,
    TaskPriority,
    TaskStatus,
    WorkingCopy,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.LOCKED: 409,
    ErrorKind.ALREADY_LOCKED: 409,
    ErrorKind.STALE_VERSION: 409,
    ErrorKind.WRONG_STAGE: 409,
    ErrorKind.NOT_PENDING: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.OUT_OF_RANGE: 422,
    ErrorKind.VALIDATION_FAILED: 422,
}


def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status = HTTP_STATUS.get(exc.kind, 400)
    return JSONResponse(status_code=status, content={"error": exc.kind.value, "detail": exc.message})


_workspace_lock = threading.Lock()


def get_workspace(request: Request) -> Workspace:
    """Workspace of the app; built from settings on first use when none was injected."""
    state = request.app.state
    if state.workspace is None:
        with _workspace_lock:
            if state.workspace is None:
                state.workspace = Workspace.from_settings(settings, path=state.snapshot_path)
    return state.workspace


class _Persister:
    """Write the workspace snapshot after each successful change."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __call__(self, request: Request) -> None:
        path = getattr(request.app.state, "snapshot_path", None)
        if path is None:
            return
        with self._lock:
            request.app.state.workspace.dump(path)


persist = _Persister()


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------

class CreateDocumentRequest(BaseModel):
    title: str
    content: str = ""
    actor_id: str
    project_id: Optional[str] = None
    folder_id: Optional[str] = None


class SaveRequest(BaseModel):
    actor_id: str
    base_version: int
    content: str
    summary: Optional[str] = None


class ResolveRequest(BaseModel):
    actor_id: str
    strategy: ResolutionStrategy
    content: Optional[str] = None
    expected_version: Optional[int] = None


class RestoreRequest(BaseModel):
    actor_id: str
    version: int
    base_version: int


class SubmitRequest(BaseModel):
    actor_id: str
    comment: Optional[str] = None
    supervisor_id: Optional[str] = None


class ActorRequest(BaseModel):
    actor_id: str


class DecideRequest(BaseModel):
    reviewer_id: str
    decision: Decision
    stage: Optional[ReviewStage] = None
    comment: Optional[str] = None


class TransferRequest(BaseModel):
    from_reviewer_id: str
    to_reviewer_id: str
    comment: Optional[str] = None


class AssignRequest(BaseModel):
    document_id: str
    assigner_id: str
    assignee_id: str
    priority: TaskPriority = TaskPriority.NORMAL
    due_date: Optional[datetime] = None
    title: Optional[str] = None
    description: Optional[str] = None


class StatusRequest(BaseModel):
    actor_id: str
    status: TaskStatus
    note: Optional[str] = None


class ProgressRequest(BaseModel):
    actor_id: str
    # range checked by the tracker (out_of_range)
    value: int = Field(...)
    note: Optional[str] = None


def _save_response(result: SaveResult) -> JSONResponse:
    return JSONResponse(status_code=200 if result.ok else 409, content=result.model_dump(mode="json"))


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------

@router.post("/documents", response_model=DocumentState, status_code=201)
def create_document(
    body: CreateDocumentRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> DocumentState:
    doc = ws.create_document(
        body.title, body.content, body.actor_id, project_id=body.project_id, folder_id=body.folder_id
    )
    persist(request)
    return doc


@router.get("/documents", response_model=List[DocumentState])
def list_documents(
    status: Optional[DocumentStatus] = None, ws: Workspace = Depends(get_workspace)
) -> List[DocumentState]:
    return ws.list_documents(status)


@router.get("/documents/{document_id}", response_model=DocumentState)
def get_document(document_id: str, ws: Workspace = Depends(get_workspace)) -> DocumentState:
    return ws.get_document(document_id)


@router.get("/documents/{document_id}/checkout", response_model=WorkingCopy)
def checkout(document_id: str, actor_id: str = Query(...), ws: Workspace = Depends(get_workspace)) -> WorkingCopy:
    return ws.checkout(document_id, actor_id)


@router.get("/documents/{document_id}/history", response_model=List[Revision])
def history(document_id: str, ws: Workspace = Depends(get_workspace)) -> List[Revision]:
    return ws.history(document_id)


@router.post("/documents/{document_id}/save")
def save(document_id: str, body: SaveRequest, request: Request, ws: Workspace = Depends(get_workspace)):
    """Write content; a stale base version answers 409 with the current state."""
    result = ws.save(document_id, body.base_version, body.content, body.actor_id, summary=body.summary)
    if result.ok:
        persist(request)
    return _save_response(result)


@router.post("/documents/{document_id}/restore")
def restore(document_id: str, body: RestoreRequest, request: Request, ws: Workspace = Depends(get_workspace)):
    result = ws.restore(document_id, body.version, body.actor_id, body.base_version)
    if result.ok:
        persist(request)
    return _save_response(result)


@router.post("/documents/{document_id}/resolve")
def resolve(document_id: str, body: ResolveRequest, request: Request, ws: Workspace = Depends(get_workspace)):
    outcome = ws.resolve(
        body.strategy, document_id, body.actor_id, content=body.content, expected_version=body.expected_version
    )
    if isinstance(outcome, WorkingCopy):
        return outcome.model_dump(mode="json")
    if outcome.ok:
        persist(request)
    return _save_response(outcome)


@router.post("/documents/{document_id}/submit", response_model=ReviewRecord, status_code=201)
def submit(
    document_id: str, body: SubmitRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> ReviewRecord:
    review = ws.submit(document_id, body.actor_id, comment=body.comment, supervisor_id=body.supervisor_id)
    persist(request)
    return review


@router.post("/documents/{document_id}/reedit", response_model=DocumentState)
def re_edit(
    document_id: str, body: ActorRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> DocumentState:
    doc = ws.re_edit(document_id, body.actor_id)
    persist(request)
    return doc


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------

@router.get("/reviews", response_model=List[ReviewRecord])
def list_reviews(
    reviewer_id: Optional[str] = None,
    submitter_id: Optional[str] = None,
    document_id: Optional[str] = None,
    completed: bool = False,
    ws: Workspace = Depends(get_workspace),
) -> List[ReviewRecord]:
    if reviewer_id:
        return ws.pending_reviews(reviewer_id)
    if submitter_id:
        return ws.submitted_reviews(submitter_id)
    if document_id:
        return ws.reviews_for_document(document_id)
    if completed:
        return ws.completed_reviews()
    return ws.all_reviews()


@router.get("/reviews/{review_id}", response_model=ReviewRecord)
def get_review(review_id: str, ws: Workspace = Depends(get_workspace)) -> ReviewRecord:
    return ws.get_review(review_id)


@router.post("/reviews/{review_id}/decide", response_model=ReviewRecord)
def decide(
    review_id: str, body: DecideRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> ReviewRecord:
    stage = body.stage or ws.get_review(review_id).current_stage
    review = ws.decide(review_id, stage, body.reviewer_id, body.decision, body.comment)
    persist(request)
    return review


@router.post("/reviews/{review_id}/transfer", response_model=ReviewRecord)
def transfer(
    review_id: str, body: TransferRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> ReviewRecord:
    review = ws.transfer(review_id, body.from_reviewer_id, body.to_reviewer_id, body.comment)
    persist(request)
    return review


# -----------------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------------

@router.post("/tasks", response_model=TaskAssignment, status_code=201)
def assign(body: AssignRequest, request: Request, ws: Workspace = Depends(get_workspace)) -> TaskAssignment:
    task = ws.assign(
        body.document_id,
        body.assigner_id,
        body.assignee_id,
        priority=body.priority,
        due_date=body.due_date,
        title=body.title,
        description=body.description,
    )
    persist(request)
    return task


@router.get("/tasks", response_model=List[TaskAssignment])
def list_tasks(
    assignee_id: Optional[str] = None,
    assigner_id: Optional[str] = None,
    document_id: Optional[str] = None,
    ws: Workspace = Depends(get_workspace),
) -> List[TaskAssignment]:
    if assignee_id:
        return ws.tasks_for_assignee(assignee_id)
    if assigner_id:
        return ws.tasks_by_assigner(assigner_id)
    if document_id:
        return ws.tasks_for_document(document_id)
    return ws.all_tasks()


@router.get("/tasks/stats")
def task_stats(assigner_id: Optional[str] = None, ws: Workspace = Depends(get_workspace)) -> dict:
    tasks = ws.tasks_by_assigner(assigner_id) if assigner_id else None
    return ws.task_stats(tasks)


@router.get("/tasks/{task_id}", response_model=TaskAssignment)
def get_task(task_id: str, ws: Workspace = Depends(get_workspace)) -> TaskAssignment:
    return ws.get_task(task_id)


@router.post("/tasks/{task_id}/status", response_model=TaskAssignment)
def update_status(
    task_id: str, body: StatusRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> TaskAssignment:
    task = ws.update_status(task_id, body.status, body.actor_id, body.note)
    persist(request)
    return task


@router.post("/tasks/{task_id}/progress", response_model=TaskAssignment)
def update_progress(
    task_id: str, body: ProgressRequest, request: Request, ws: Workspace = Depends(get_workspace)
) -> TaskAssignment:
    task = ws.update_progress(task_id, body.value, body.actor_id, body.note)
    persist(request)
    return task
