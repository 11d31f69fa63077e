"""Task delegation and progress tracking.

States::

    todo -> in_progress -> completed
                        -> blocked -> in_progress

Every status or progress change appends to the task's timeline before
the new state is written.  Overdue is derived when read, never stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from ..core.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OutOfRangeError,
    ValidationFailedError,
)
from ..core.identity import ActorDirectory, Clock, SystemClock
from ..core.ids import task_id as new_task_id
from ..core.locking import EntityLocks
from ..core.models import Actor, TaskAssignment, TaskPriority, TaskStatus
from ..core.timeline import TimelineEvent, TimelineEventType
from ..events import EventSink, InMemoryEventSink, WorkflowEvent
from ..policy import can_assign, can_update_task
from ..store.base import DocumentStore, TaskStore, Transaction
from ..utils.logging import get_logger

logger = get_logger(__name__)

TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.BLOCKED}),
    TaskStatus.BLOCKED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.COMPLETED: frozenset(),
}


class TaskTracker:
    """Owns task assignments and their timelines."""

    def __init__(
        self,
        tasks: TaskStore,
        documents: DocumentStore,
        directory: ActorDirectory,
        clock: Optional[Clock] = None,
        locks: Optional[EntityLocks] = None,
        events: Optional[EventSink] = None,
    ) -> None:
        self.tasks = tasks
        self.documents = documents
        self.directory = directory
        self.clock = clock or SystemClock()
        self.locks = locks or EntityLocks()
        self.events = events or InMemoryEventSink()

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
        """Delegate authorship of a document to an employee."""
        assigner = self.directory.get(assigner_id)
        assignee = self.directory.get(assignee_id)
        document = self.documents.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found", entity_id=document_id)
        if not can_assign(assigner, assignee):
            logger.warning(
                f"{assigner_id} ({assigner.role.value}) may not assign work to "
                f"{assignee_id} ({assignee.role.value})"
            )
            raise ForbiddenError(
                f"{assigner.name} cannot assign tasks to {assignee.name}", entity_id=document_id
            )

        now = self.clock()
        task = TaskAssignment(
            task_id=new_task_id(),
            document_id=document_id,
            document_title=document.title,
            title=(title or "").strip() or f"Write {document.title}",
            description=description,
            assigner_id=assigner_id,
            assigner_name=assigner.name,
            assignee_id=assignee_id,
            assignee_name=assignee.name,
            assigned_at=now,
            priority=TaskPriority(priority),
            due_date=due_date,
            created_at=now,
            updated_at=now,
        )
        task.timeline.append(
            TimelineEvent(
                type=TimelineEventType.ASSIGNED,
                actor_id=assigner_id,
                actor_name=assigner.name,
                timestamp=now,
                note=f"Assigned to {assignee.name}",
                to_status=TaskStatus.TODO.value,
            )
        )

        with self.locks.task(task.task_id):
            self._commit(task, "task.assigned", assigner_id, assignee_id=assignee_id, priority=task.priority.value)

        logger.info(f"Assigned {task.task_id} on {document_id} to {assignee_id} ({task.priority.value})")
        return task

    def update_status(
        self,
        task_id: str,
        new_status: TaskStatus,
        actor_id: str,
        note: Optional[str] = None,
    ) -> TaskAssignment:
        new_status = TaskStatus(new_status)
        note = (note or "").strip() or None

        with self.locks.task(task_id):
            task = self.get(task_id)
            actor = self._require_assignee(task, actor_id)
            old_status = task.status
            if new_status not in TRANSITIONS[old_status]:
                logger.warning(f"Invalid transition on {task_id}: {old_status.value} -> {new_status.value}")
                raise InvalidTransitionError(
                    f"Cannot move task from {old_status.value} to {new_status.value}", entity_id=task_id
                )
            if new_status == TaskStatus.BLOCKED and not note:
                raise ValidationFailedError("Blocking a task requires a note", entity_id=task_id)

            now = self.clock()
            updated = task.model_copy(deep=True)
            updated.status = new_status
            updated.updated_at = now
            if new_status == TaskStatus.COMPLETED:
                updated.progress = 100
                updated.completed_at = now

            updated.timeline.append(
                self._event(
                    _status_event(old_status, new_status), actor, now, note,
                    from_status=old_status, to_status=new_status, progress=updated.progress,
                )
            )
            self._commit(
                updated,
                "task.status_changed",
                actor_id,
                from_status=old_status.value,
                to_status=new_status.value,
                note=note,
            )

        logger.info(f"Task {task_id}: {old_status.value} -> {new_status.value} by {actor_id}")
        return updated

    def update_progress(
        self,
        task_id: str,
        value: int,
        actor_id: str,
        note: Optional[str] = None,
    ) -> TaskAssignment:
        """Set progress; 100 completes the task in the same call."""
        note = (note or "").strip() or None

        with self.locks.task(task_id):
            task = self.get(task_id)
            actor = self._require_assignee(task, actor_id)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                logger.warning(f"Progress {value!r} out of range for {task_id}")
                raise OutOfRangeError(f"Progress must be between 0 and 100, got {value!r}", entity_id=task_id)
            old_status = task.status
            if old_status == TaskStatus.COMPLETED:
                raise InvalidTransitionError(f"Task {task_id} is already completed", entity_id=task_id)
            if old_status == TaskStatus.BLOCKED and value < 100:
                raise InvalidTransitionError(
                    f"Task {task_id} is blocked; resume it before reporting progress", entity_id=task_id
                )

            now = self.clock()
            updated = task.model_copy(deep=True)
            updated.progress = value
            updated.updated_at = now
            updated.timeline.append(
                self._event(
                    TimelineEventType.PROGRESS_UPDATED, actor, now, note,
                    from_status=old_status, to_status=old_status, progress=value,
                )
            )

            follow_up: Optional[TimelineEventType] = None
            if value == 100:
                updated.status = TaskStatus.COMPLETED
                updated.completed_at = now
                follow_up = TimelineEventType.COMPLETED
            elif old_status == TaskStatus.TODO and value > 0:
                updated.status = TaskStatus.IN_PROGRESS
                follow_up = TimelineEventType.STARTED
            if follow_up is not None:
                updated.timeline.append(
                    self._event(
                        follow_up, actor, now, None,
                        from_status=old_status, to_status=updated.status, progress=value,
                    )
                )

            self._commit(
                updated,
                "task.progress_updated",
                actor_id,
                progress=value,
                from_status=old_status.value,
                to_status=updated.status.value,
            )

        logger.info(f"Task {task_id}: progress {task.progress} -> {value} by {actor_id}")
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> TaskAssignment:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", entity_id=task_id)
        return task

    def all(self) -> List[TaskAssignment]:
        return _by_assignment(self.tasks.list())

    def for_assignee(self, assignee_id: str) -> List[TaskAssignment]:
        return _by_assignment(self.tasks.for_assignee(assignee_id))

    def by_assigner(self, assigner_id: str) -> List[TaskAssignment]:
        return _by_assignment(self.tasks.by_assigner(assigner_id))

    def for_document(self, document_id: str) -> List[TaskAssignment]:
        return _by_assignment(self.tasks.for_document(document_id))

    def is_overdue(self, task: TaskAssignment, now: Optional[datetime] = None) -> bool:
        return task.is_overdue(now or self.clock())

    def overdue(self, now: Optional[datetime] = None) -> List[TaskAssignment]:
        now = now or self.clock()
        return [t for t in self.all() if t.is_overdue(now)]

    def stats(
        self,
        tasks: Optional[Iterable[TaskAssignment]] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """Board counters: totals per status, overdue, and per assignee."""
        now = now or self.clock()
        rows = list(tasks) if tasks is not None else self.tasks.list()
        counts = {
            "total": len(rows),
            **{s.value: 0 for s in TaskStatus},
            "overdue": 0,
            "by_assignee": {},
        }
        for task in rows:
            counts[task.status.value] += 1
            late = task.is_overdue(now)
            if late:
                counts["overdue"] += 1
            entry = counts["by_assignee"].setdefault(task.assignee_id, {"total": 0, "overdue": 0})
            entry["total"] += 1
            if late:
                entry["overdue"] += 1
        return counts

    # ------------------------------------------------------------------

    def _require_assignee(self, task: TaskAssignment, actor_id: str) -> Actor:
        actor = self.directory.get(actor_id)
        if not can_update_task(actor_id, task.assignee_id):
            logger.warning(f"{actor_id} tried to update {task.task_id} assigned to {task.assignee_id}")
            raise ForbiddenError(
                f"Only {task.assignee_name} can update task {task.task_id}", entity_id=task.task_id
            )
        return actor

    @staticmethod
    def _event(
        event_type: TimelineEventType,
        actor: Actor,
        when: datetime,
        note: Optional[str],
        from_status: TaskStatus,
        to_status: TaskStatus,
        progress: int,
    ) -> TimelineEvent:
        return TimelineEvent(
            type=event_type,
            actor_id=actor.actor_id,
            actor_name=actor.name,
            timestamp=when,
            note=note,
            from_status=from_status.value,
            to_status=to_status.value,
            progress=progress,
        )

    def _commit(self, task: TaskAssignment, event_type: str, actor_id: str, **data) -> None:
        txn = Transaction(tasks=self.tasks)
        txn.put_task(task)
        txn.after_commit(
            lambda: self.events.emit(
                WorkflowEvent(
                    type=event_type,
                    entity="task",
                    entity_id=task.task_id,
                    document_id=task.document_id,
                    actor_id=actor_id,
                    occurred_at=self.clock(),
                    data={"status": task.status.value, "progress": task.progress, **data},
                )
            )
        )
        txn.commit()


def _status_event(old: TaskStatus, new: TaskStatus) -> TimelineEventType:
    if new == TaskStatus.COMPLETED:
        return TimelineEventType.COMPLETED
    if new == TaskStatus.BLOCKED:
        return TimelineEventType.BLOCKED
    if new == TaskStatus.IN_PROGRESS and old == TaskStatus.TODO:
        return TimelineEventType.STARTED
    return TimelineEventType.STATUS_CHANGED


def _by_assignment(tasks: Iterable[TaskAssignment]) -> List[TaskAssignment]:
    return sorted(tasks, key=lambda t: t.assigned_at)
