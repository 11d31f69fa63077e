"""Dict-backed stores for tests, the CLI and single-process deployments."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from ..core.models import DocumentState, ReviewRecord, Revision, TaskAssignment
from .base import DocumentStore, ReviewStore, TaskStore


class _Table:
    """Thread-safe mapping that stores and returns deep copies."""

    def __init__(self) -> None:
        self._rows: Dict[str, object] = {}
        self._lock = threading.Lock()

    def get(self, key: str):
        with self._lock:
            row = self._rows.get(key)
            return row.model_copy(deep=True) if row is not None else None

    def put(self, key: str, row) -> None:
        with self._lock:
            self._rows[key] = row.model_copy(deep=True)

    def discard(self, key: str) -> None:
        with self._lock:
            self._rows.pop(key, None)

    def values(self) -> List:
        with self._lock:
            return [row.model_copy(deep=True) for row in self._rows.values()]


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._table = _Table()
        self._revisions: Dict[str, List[Revision]] = {}
        self._rev_lock = threading.Lock()

    def get(self, document_id: str) -> Optional[DocumentState]:
        return self._table.get(document_id)

    def put(self, document: DocumentState) -> None:
        self._table.put(document.document_id, document)

    def discard(self, document_id: str) -> None:
        self._table.discard(document_id)

    def list(self) -> List[DocumentState]:
        return self._table.values()

    def add_revision(self, revision: Revision) -> None:
        with self._rev_lock:
            history = self._revisions.setdefault(revision.document_id, [])
            if any(r.version == revision.version for r in history):
                raise ValueError(
                    f"Revision v{revision.version} of {revision.document_id} already recorded"
                )
            history.append(revision.model_copy(deep=True))
            history.sort(key=lambda r: r.version)

    def discard_revision(self, document_id: str, version: int) -> None:
        with self._rev_lock:
            history = self._revisions.get(document_id, [])
            self._revisions[document_id] = [r for r in history if r.version != version]

    def revisions(self, document_id: str) -> List[Revision]:
        with self._rev_lock:
            return [r.model_copy(deep=True) for r in self._revisions.get(document_id, [])]


class InMemoryReviewStore(ReviewStore):
    def __init__(self) -> None:
        self._table = _Table()

    def get(self, review_id: str) -> Optional[ReviewRecord]:
        return self._table.get(review_id)

    def put(self, review: ReviewRecord) -> None:
        self._table.put(review.review_id, review)

    def discard(self, review_id: str) -> None:
        self._table.discard(review_id)

    def list(self) -> List[ReviewRecord]:
        return self._table.values()


class InMemoryTaskStore(TaskStore):
    def __init__(self) -> None:
        self._table = _Table()

    def get(self, task_id: str) -> Optional[TaskAssignment]:
        return self._table.get(task_id)

    def put(self, task: TaskAssignment) -> None:
        self._table.put(task.task_id, task)

    def discard(self, task_id: str) -> None:
        self._table.discard(task_id)

    def list(self) -> List[TaskAssignment]:
        return self._table.values()
