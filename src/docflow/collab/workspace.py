"""Collaborative workspace.

A :class:`Workspace` wires one set of stores to the lifecycle machine,
the conflict resolver, the review pipeline and the task tracker, and
exposes their operations behind one object.  The CLI and the web API
both talk to a workspace; neither reaches into the components directly.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..conflict.detector import ConflictDetector
from ..conflict.resolver import MergeResolver
from ..core.identity import ActorDirectory, Clock, SystemClock
from ..core.locking import EntityLocks
from ..core.models import (
    Actor,
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
from ..events import EventSink, InMemoryEventSink, LoggingEventSink
from ..lifecycle.machine import DocumentLifecycle
from ..review.checks import Checker
from ..review.pipeline import ReviewPipeline
from ..store.base import DocumentStore, ReviewStore, TaskStore
from ..store.memory import InMemoryDocumentStore, InMemoryReviewStore, InMemoryTaskStore
from ..store.snapshot import load_snapshot, save_snapshot
from ..tasks.tracker import TaskTracker
from ..utils.logging import get_logger

logger = get_logger(__name__)


class Workspace:
    """Container wiring stores and workflow components together."""

    def __init__(
        self,
        actors: Optional[Iterable[Actor]] = None,
        clock: Optional[Clock] = None,
        documents: Optional[DocumentStore] = None,
        reviews: Optional[ReviewStore] = None,
        tasks: Optional[TaskStore] = None,
        events: Optional[EventSink] = None,
        checker: Optional[Checker] = None,
        check_enabled: bool = True,
        reject_requires_comment: bool = True,
    ) -> None:
        self.directory = ActorDirectory(actors)
        self.clock = clock or SystemClock()
        self.documents = documents or InMemoryDocumentStore()
        self.reviews = reviews or InMemoryReviewStore()
        self.tasks = tasks or InMemoryTaskStore()
        # Events are retained in memory only when no sink is injected.
        self.audit: Optional[InMemoryEventSink] = InMemoryEventSink() if events is None else None
        self.events: EventSink = events if events is not None else self.audit
        self.locks = EntityLocks()

        self.detector = ConflictDetector()
        self.lifecycle = DocumentLifecycle(
            self.documents,
            self.directory,
            clock=self.clock,
            locks=self.locks,
            events=self.events,
            detector=self.detector,
        )
        self.resolver = MergeResolver(self.lifecycle)
        self.pipeline = ReviewPipeline(
            self.reviews,
            self.lifecycle,
            checker=checker,
            check_enabled=check_enabled,
            reject_requires_comment=reject_requires_comment,
        )
        self.tracker = TaskTracker(
            self.tasks,
            self.documents,
            self.directory,
            clock=self.clock,
            locks=self.locks,
            events=self.events,
        )

    # ------------------------------------------------------------------
    # Construction from configuration
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(cls, settings, path: Optional[Path] = None, **kwargs) -> "Workspace":
        """Build a workspace from settings and load its snapshot, if any."""
        kwargs.setdefault("check_enabled", settings.check_enabled)
        kwargs.setdefault("reject_requires_comment", settings.reject_requires_comment)
        kwargs.setdefault("events", LoggingEventSink())
        workspace = cls(**kwargs)
        workspace.load(path or settings.workspace_path)
        return workspace

    def load(self, path: Path) -> Optional[Dict[str, int]]:
        return load_snapshot(
            path,
            directory=self.directory,
            documents=self.documents,
            reviews=self.reviews,
            tasks=self.tasks,
        )

    def dump(self, path: Path) -> Dict[str, int]:
        """Write a snapshot taken while no entity operation is in flight."""
        with self.locks.quiesce():
            return save_snapshot(
                path,
                directory=self.directory,
                documents=self.documents,
                reviews=self.reviews,
                tasks=self.tasks,
            )

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------

    def add_actor(self, actor: Actor) -> Actor:
        """Add an actor to the workspace."""
        self.directory.add(actor)
        logger.info(f"Added actor {actor.actor_id} ({actor.role.value}) to workspace")
        return actor

    def actors(self) -> List[Actor]:
        return self.directory.all()

    # ------------------------------------------------------------------
    # Documents and conflicts
    # ------------------------------------------------------------------

    def create_document(
        self,
        title: str,
        content: str,
        actor_id: str,
        project_id: Optional[str] = None,
        folder_id: Optional[str] = None,
    ) -> DocumentState:
        return self.lifecycle.create(title, content, actor_id, project_id=project_id, folder_id=folder_id)

    def get_document(self, document_id: str) -> DocumentState:
        return self.lifecycle.get(document_id)

    def list_documents(self, status: Optional[DocumentStatus] = None) -> List[DocumentState]:
        return self.lifecycle.list(status)

    def checkout(self, document_id: str, actor_id: str) -> WorkingCopy:
        return self.lifecycle.checkout(document_id, actor_id)

    def save(
        self,
        document_id: str,
        base_version: int,
        new_content: str,
        actor_id: str,
        summary: Optional[str] = None,
    ) -> SaveResult:
        return self.lifecycle.save(document_id, base_version, new_content, actor_id, summary=summary)

    def history(self, document_id: str) -> List[Revision]:
        return self.lifecycle.history(document_id)

    def revision(self, document_id: str, version: int) -> Revision:
        return self.lifecycle.revision(document_id, version)

    def restore(self, document_id: str, version: int, actor_id: str, base_version: int) -> SaveResult:
        return self.lifecycle.restore(document_id, version, actor_id, base_version)

    def resolve_local(
        self, document_id: str, client_content: str, actor_id: str, expected_version: Optional[int] = None
    ) -> SaveResult:
        return self.resolver.resolve_local(document_id, client_content, actor_id, expected_version)

    def resolve_remote(self, document_id: str, actor_id: str) -> WorkingCopy:
        return self.resolver.resolve_remote(document_id, actor_id)

    def resolve_manual(
        self, document_id: str, merged_content: str, actor_id: str, expected_version: Optional[int] = None
    ) -> SaveResult:
        return self.resolver.resolve_manual(document_id, merged_content, actor_id, expected_version)

    def resolve(
        self,
        strategy: ResolutionStrategy,
        document_id: str,
        actor_id: str,
        content: Optional[str] = None,
        expected_version: Optional[int] = None,
    ):
        return self.resolver.resolve(strategy, document_id, actor_id, content, expected_version)

    def submit(
        self,
        document_id: str,
        actor_id: str,
        comment: Optional[str] = None,
        supervisor_id: Optional[str] = None,
    ) -> ReviewRecord:
        return self.lifecycle.submit(document_id, actor_id, comment=comment, supervisor_id=supervisor_id)

    def re_edit(self, document_id: str, actor_id: str) -> DocumentState:
        return self.lifecycle.re_edit(document_id, actor_id)

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def decide(
        self,
        review_id: str,
        stage: ReviewStage,
        reviewer_id: str,
        decision: Decision,
        comment: Optional[str] = None,
    ) -> ReviewRecord:
        return self.pipeline.decide(review_id, stage, reviewer_id, decision, comment)

    def transfer(
        self, review_id: str, from_reviewer_id: str, to_reviewer_id: str, comment: Optional[str] = None
    ) -> ReviewRecord:
        return self.pipeline.transfer(review_id, from_reviewer_id, to_reviewer_id, comment)

    def get_review(self, review_id: str) -> ReviewRecord:
        return self.pipeline.get(review_id)

    def pending_reviews(self, reviewer_id: str) -> List[ReviewRecord]:
        return self.pipeline.pending_for(reviewer_id)

    def submitted_reviews(self, submitter_id: str) -> List[ReviewRecord]:
        return self.pipeline.submitted_by(submitter_id)

    def reviews_for_document(self, document_id: str) -> List[ReviewRecord]:
        return self.pipeline.for_document(document_id)

    def active_review(self, document_id: str) -> Optional[ReviewRecord]:
        return self.pipeline.active_for_document(document_id)

    def completed_reviews(self) -> List[ReviewRecord]:
        return self.pipeline.completed()

    def all_reviews(self) -> List[ReviewRecord]:
        return self.pipeline.all()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def assign(
        self,
        document_id: str,
        assigner_id: str,
        assignee_id: str,
        priority: TaskPriority = TaskPriority.NORMAL,
        due_date: Optional[datetime] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TaskAssignment:
        return self.tracker.assign(
            document_id,
            assigner_id,
            assignee_id,
            priority=priority,
            due_date=due_date,
            title=title,
            description=description,
        )

    def update_status(
        self, task_id: str, new_status: TaskStatus, actor_id: str, note: Optional[str] = None
    ) -> TaskAssignment:
        return self.tracker.update_status(task_id, new_status, actor_id, note)

    def update_progress(
        self, task_id: str, value: int, actor_id: str, note: Optional[str] = None
    ) -> TaskAssignment:
        return self.tracker.update_progress(task_id, value, actor_id, note)

    def get_task(self, task_id: str) -> TaskAssignment:
        return self.tracker.get(task_id)

    def tasks_for_assignee(self, assignee_id: str) -> List[TaskAssignment]:
        return self.tracker.for_assignee(assignee_id)

    def tasks_by_assigner(self, assigner_id: str) -> List[TaskAssignment]:
        return self.tracker.by_assigner(assigner_id)

    def tasks_for_document(self, document_id: str) -> List[TaskAssignment]:
        return self.tracker.for_document(document_id)

    def all_tasks(self) -> List[TaskAssignment]:
        return self.tracker.all()

    def overdue_tasks(self, now: Optional[datetime] = None) -> List[TaskAssignment]:
        return self.tracker.overdue(now)

    def task_stats(
        self, tasks: Optional[Iterable[TaskAssignment]] = None, now: Optional[datetime] = None
    ) -> dict:
        return self.tracker.stats(tasks, now)
