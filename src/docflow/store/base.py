"""Repository interfaces for the four entity tables.

Each store is exclusively responsible for one entity kind.  Stores
hand out copies: mutating a model returned by ``get`` has no effect
until it is written back with ``put``, which only the owning
component does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..core.models import DocumentState, ReviewRecord, Revision, TaskAssignment, Decision
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DocumentStore(ABC):
    """Documents and their revision history."""

    @abstractmethod
    def get(self, document_id: str) -> Optional[DocumentState]: ...

    @abstractmethod
    def put(self, document: DocumentState) -> None: ...

    @abstractmethod
    def discard(self, document_id: str) -> None:
        """Remove a document that was inserted by an uncommitted transaction."""

    @abstractmethod
    def list(self) -> List[DocumentState]: ...

    @abstractmethod
    def add_revision(self, revision: Revision) -> None: ...

    @abstractmethod
    def discard_revision(self, document_id: str, version: int) -> None:
        """Remove a revision written by an uncommitted transaction."""

    @abstractmethod
    def revisions(self, document_id: str) -> List[Revision]:
        """Revisions in ascending version order."""


class ReviewStore(ABC):
    """Review records keyed by review id."""

    @abstractmethod
    def get(self, review_id: str) -> Optional[ReviewRecord]: ...

    @abstractmethod
    def put(self, review: ReviewRecord) -> None: ...

    @abstractmethod
    def discard(self, review_id: str) -> None: ...

    @abstractmethod
    def list(self) -> List[ReviewRecord]: ...

    def for_document(self, document_id: str) -> List[ReviewRecord]:
        return [r for r in self.list() if r.document_id == document_id]

    def pending_for_document(self, document_id: str) -> Optional[ReviewRecord]:
        for review in self.for_document(document_id):
            if review.final_status == Decision.PENDING:
                return review
        return None


class TaskStore(ABC):
    """Task assignments keyed by task id."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskAssignment]: ...

    @abstractmethod
    def put(self, task: TaskAssignment) -> None: ...

    @abstractmethod
    def discard(self, task_id: str) -> None: ...

    @abstractmethod
    def list(self) -> List[TaskAssignment]: ...

    def for_document(self, document_id: str) -> List[TaskAssignment]:
        return [t for t in self.list() if t.document_id == document_id]

    def for_assignee(self, assignee_id: str) -> List[TaskAssignment]:
        return [t for t in self.list() if t.assignee_id == assignee_id]

    def by_assigner(self, assigner_id: str) -> List[TaskAssignment]:
        return [t for t in self.list() if t.assigner_id == assigner_id]


class Transaction:
    """Stage writes across stores and apply them together.

    Guards run before anything is staged, so a commit normally cannot
    fail half way.  If a backend write does raise, the writes already
    applied are undone in reverse order before the error propagates.
    """

    def __init__(
        self,
        documents: Optional[DocumentStore] = None,
        reviews: Optional[ReviewStore] = None,
        tasks: Optional[TaskStore] = None,
    ) -> None:
        self._documents = documents
        self._reviews = reviews
        self._tasks = tasks
        self._writes: List[Callable[[], Callable[[], None]]] = []
        self._after_commit: List[Callable[[], None]] = []
        self.committed = False

    def put_document(self, document: DocumentState) -> "Transaction":
        store = self._require(self._documents, "documents")

        def write() -> Callable[[], None]:
            before = store.get(document.document_id)
            store.put(document)
            if before is None:
                return lambda: store.discard(document.document_id)
            return lambda: store.put(before)

        self._writes.append(write)
        return self

    def add_revision(self, revision: Revision) -> "Transaction":
        store = self._require(self._documents, "documents")

        def write() -> Callable[[], None]:
            store.add_revision(revision)
            return lambda: store.discard_revision(revision.document_id, revision.version)

        self._writes.append(write)
        return self

    def put_review(self, review: ReviewRecord) -> "Transaction":
        store = self._require(self._reviews, "reviews")

        def write() -> Callable[[], None]:
            before = store.get(review.review_id)
            store.put(review)
            if before is None:
                return lambda: store.discard(review.review_id)
            return lambda: store.put(before)

        self._writes.append(write)
        return self

    def put_task(self, task: TaskAssignment) -> "Transaction":
        store = self._require(self._tasks, "tasks")

        def write() -> Callable[[], None]:
            before = store.get(task.task_id)
            store.put(task)
            if before is None:
                return lambda: store.discard(task.task_id)
            return lambda: store.put(before)

        self._writes.append(write)
        return self

    def commit(self) -> None:
        if self.committed:
            raise RuntimeError("Transaction already committed")
        undo: List[Callable[[], None]] = []
        try:
            for write in self._writes:
                undo.append(write())
        except Exception:
            logger.error(f"Commit failed after {len(undo)} of {len(self._writes)} writes; rolling back")
            for revert in reversed(undo):
                revert()
            raise
        self.committed = True
        for callback in self._after_commit:
            try:
                callback()
            except Exception as exc:
                logger.warning(f"Post-commit hook failed: {exc}")

    def after_commit(self, callback: Callable[[], None]) -> "Transaction":
        """Run ``callback`` once every staged write has been applied."""
        self._after_commit.append(callback)
        return self

    @staticmethod
    def _require(store, name: str):
        if store is None:
            raise RuntimeError(f"Transaction was opened without a {name} store")
        return store
