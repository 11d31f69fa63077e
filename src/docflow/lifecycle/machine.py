"""Document lifecycle state machine.

States::

    draft -> pending_review -> approved      (terminal, stays locked)
                            -> rejected -> draft   (via re_edit)

Content writes are accepted only on an unlocked draft.  Every accepted
write increments ``version`` by exactly one and stores a revision.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from ..conflict.detector import ConflictDetector
from ..core.errors import (
    AlreadyLockedError,
    ConsistencyError,
    InvalidStateError,
    LockedError,
    NotFoundError,
    ValidationFailedError,
)
from ..core.identity import ActorDirectory, Clock, SystemClock
from ..core.ids import document_id as new_document_id
from ..core.locking import EntityLocks
from ..core.models import (
    Decision,
    DocumentState,
    DocumentStatus,
    ReviewRecord,
    Revision,
    SaveResult,
    SaveStatus,
    WorkingCopy,
)
from ..events import EventSink, InMemoryEventSink, WorkflowEvent
from ..policy import can_edit
from ..store.base import DocumentStore, Transaction
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..review.pipeline import ReviewPipeline

logger = get_logger(__name__)


class DocumentLifecycle:
    """Owns document status, edit lock and content versioning."""

    def __init__(
        self,
        documents: DocumentStore,
        directory: ActorDirectory,
        clock: Optional[Clock] = None,
        locks: Optional[EntityLocks] = None,
        events: Optional[EventSink] = None,
        detector: Optional[ConflictDetector] = None,
    ) -> None:
        self.documents = documents
        self.directory = directory
        self.clock = clock or SystemClock()
        self.locks = locks or EntityLocks()
        self.events = events or InMemoryEventSink()
        self.detector = detector or ConflictDetector()
        self.pipeline: Optional["ReviewPipeline"] = None

    def attach_pipeline(self, pipeline: "ReviewPipeline") -> None:
        """Wire the review pipeline that ``submit`` opens records in."""
        self.pipeline = pipeline

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, document_id: str) -> DocumentState:
        document = self.documents.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found", entity_id=document_id)
        return document

    def list(self, status: Optional[DocumentStatus] = None) -> List[DocumentState]:
        docs = self.documents.list()
        if status is not None:
            docs = [d for d in docs if d.status == status]
        return sorted(docs, key=lambda d: d.created_at)

    def checkout(self, document_id: str, actor_id: str) -> WorkingCopy:
        """Current ``(base_version, content)`` pair for a client to edit."""
        self.directory.get(actor_id)
        document = self.get(document_id)
        return WorkingCopy(
            document_id=document_id,
            actor_id=actor_id,
            base_version=document.version,
            content=document.content,
        )

    def history(self, document_id: str) -> List[Revision]:
        """Accepted revisions, newest first."""
        self.get(document_id)
        return list(reversed(self.documents.revisions(document_id)))

    def revision(self, document_id: str, version: int) -> Revision:
        for rev in self.documents.revisions(document_id):
            if rev.version == version:
                return rev
        raise NotFoundError(f"Document {document_id} has no revision v{version}", entity_id=document_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        content: str,
        actor_id: str,
        project_id: Optional[str] = None,
        folder_id: Optional[str] = None,
    ) -> DocumentState:
        """Create a new draft at version 1."""
        self.directory.get(actor_id)
        if not title or not title.strip():
            raise ValidationFailedError("Document title must not be empty")

        now = self.clock()
        document = DocumentState(
            document_id=new_document_id(),
            title=title.strip(),
            content=content,
            project_id=project_id,
            folder_id=folder_id,
            created_by=actor_id,
            created_at=now,
            updated_by=actor_id,
            updated_at=now,
        )
        txn = Transaction(documents=self.documents)
        txn.put_document(document)
        txn.add_revision(
            Revision(
                document_id=document.document_id,
                version=document.version,
                content=content,
                author_id=actor_id,
                created_at=now,
                summary="Created",
            )
        )
        txn.after_commit(lambda: self._emit("document.created", document, actor_id, title=document.title))
        with self.locks.document(document.document_id):
            txn.commit()

        logger.info(f"Created document {document.document_id} '{document.title}' by {actor_id}")
        return document

    def save(
        self,
        document_id: str,
        base_version: int,
        new_content: str,
        actor_id: str,
        summary: Optional[str] = None,
    ) -> SaveResult:
        """Write content if ``base_version`` is still current.

        Raises :class:`LockedError` unless the document is an unlocked
        draft.  A version mismatch is not raised: the returned result
        has status ``stale`` and carries the current version and content
        so the caller can resolve the conflict.
        """
        actor = self.directory.get(actor_id)
        if base_version < 1:
            raise ValidationFailedError(f"Invalid base version {base_version}", entity_id=document_id)

        with self.locks.document(document_id):
            document = self.get(document_id)
            if not can_edit(actor, document):
                logger.warning(
                    f"Rejected save on {document_id} by {actor_id}: status={document.status.value} "
                    f"locked_by={document.locked_by}"
                )
                raise LockedError(
                    f"Document {document_id} is {document.status.value} and cannot be edited",
                    entity_id=document_id,
                )

            if self.detector.is_stale(base_version, document):
                attempted = WorkingCopy(
                    document_id=document_id,
                    actor_id=actor_id,
                    base_version=base_version,
                    content=new_content,
                )
                conflict = self.detector.classify(attempted, document)
                logger.info(
                    f"Stale save on {document_id} by {actor_id}: base v{base_version}, current v{document.version}"
                )
                self._emit(
                    "document.conflict_detected",
                    document,
                    actor_id,
                    base_version=base_version,
                    current_version=document.version,
                    conflict=conflict.value,
                )
                return SaveResult(
                    status=SaveStatus.STALE,
                    document_id=document_id,
                    version=document.version,
                    working_copy=attempted,
                    current_content=document.content,
                    conflict=conflict,
                )

            now = self.clock()
            updated = document.model_copy(
                update={
                    "content": new_content,
                    "version": document.version + 1,
                    "updated_by": actor_id,
                    "updated_at": now,
                }
            )
            txn = Transaction(documents=self.documents)
            txn.put_document(updated)
            txn.add_revision(
                Revision(
                    document_id=document_id,
                    version=updated.version,
                    content=new_content,
                    author_id=actor_id,
                    created_at=now,
                    summary=summary,
                )
            )
            txn.after_commit(
                lambda: self._emit("document.saved", updated, actor_id, version=updated.version)
            )
            txn.commit()

        logger.info(f"Saved {document_id} v{updated.version} by {actor_id}")
        return SaveResult(
            status=SaveStatus.SAVED,
            document_id=document_id,
            version=updated.version,
            working_copy=WorkingCopy(
                document_id=document_id,
                actor_id=actor_id,
                base_version=updated.version,
                content=new_content,
            ),
        )

    def restore(
        self, document_id: str, version: int, actor_id: str, base_version: int
    ) -> SaveResult:
        """Save the content of an earlier revision as a new version."""
        old = self.revision(document_id, version)
        return self.save(
            document_id, base_version, old.content, actor_id, summary=f"Restored from v{version}"
        )

    def submit(
        self,
        document_id: str,
        actor_id: str,
        comment: Optional[str] = None,
        supervisor_id: Optional[str] = None,
    ) -> ReviewRecord:
        """Lock the document and open a review record for it.

        The document update and the new review are committed together.
        """
        if self.pipeline is None:
            raise RuntimeError("No review pipeline attached to the lifecycle machine")
        actor = self.directory.get(actor_id)

        with self.locks.document(document_id):
            document = self.get(document_id)
            if document.status != DocumentStatus.DRAFT:
                logger.warning(f"Rejected submit of {document_id}: status is {document.status.value}")
                raise InvalidStateError(
                    f"Only drafts can be submitted; {document_id} is {document.status.value}",
                    entity_id=document_id,
                )
            if document.locked_by is not None:
                logger.warning(f"Rejected submit of {document_id}: locked by {document.locked_by}")
                raise AlreadyLockedError(
                    f"Document {document_id} is already locked by {document.locked_by}",
                    entity_id=document_id,
                )
            if not can_edit(actor, document):
                raise LockedError(f"Document {document_id} cannot be edited", entity_id=document_id)

            now = self.clock()
            updated = document.model_copy(
                update={
                    "status": DocumentStatus.PENDING_REVIEW,
                    "locked_by": actor_id,
                    "locked_at": now,
                }
            )
            txn = Transaction(documents=self.documents, reviews=self.pipeline.reviews)
            txn.put_document(updated)
            txn.after_commit(
                lambda: self._emit("document.submitted", updated, actor_id, version=updated.version)
            )
            review = self.pipeline.open(
                updated,
                actor_id,
                comment=comment,
                supervisor_id=supervisor_id,
                transaction=txn,
            )
            txn.commit()

        logger.info(f"Submitted {document_id} v{updated.version} for review {review.review_id} by {actor_id}")
        return review

    def re_edit(self, document_id: str, actor_id: str) -> DocumentState:
        """Return a rejected document to draft so it can be edited again."""
        self.directory.get(actor_id)
        with self.locks.document(document_id):
            document = self.get(document_id)
            if document.status != DocumentStatus.REJECTED:
                logger.warning(f"Rejected re-edit of {document_id}: status is {document.status.value}")
                raise InvalidStateError(
                    f"Only rejected documents can be re-edited; {document_id} is {document.status.value}",
                    entity_id=document_id,
                )
            updated = document.model_copy(update={"status": DocumentStatus.DRAFT})
            txn = Transaction(documents=self.documents)
            txn.put_document(updated)
            txn.after_commit(lambda: self._emit("document.reedited", updated, actor_id))
            txn.commit()

        logger.info(f"Document {document_id} back to draft by {actor_id}")
        return updated

    def apply_review_outcome(
        self,
        document_id: str,
        outcome: Decision,
        transaction: Optional[Transaction] = None,
        actor_id: Optional[str] = None,
    ) -> DocumentState:
        """Move a document under review to its terminal review outcome.

        Called by the review pipeline only.  When ``transaction`` is
        given the document write is staged on it and committed together
        with the review record; otherwise it is committed here.

        Raises :class:`ConsistencyError` when the document is not locked
        in ``pending_review``.
        """
        outcome = Decision(outcome)
        if outcome == Decision.PENDING:
            raise ValidationFailedError("A review outcome must be approved or rejected", entity_id=document_id)

        with self.locks.document(document_id):
            document = self.get(document_id)
            if document.status != DocumentStatus.PENDING_REVIEW or not document.is_locked:
                logger.error(
                    f"Review outcome '{outcome.value}' for {document_id} found status="
                    f"{document.status.value} locked_by={document.locked_by}"
                )
                raise ConsistencyError(
                    f"Document {document_id} is {document.status.value}, expected a locked pending_review"
                )

            if outcome == Decision.APPROVED:
                updated = document.model_copy(update={"status": DocumentStatus.APPROVED})
                event_type = "document.approved"
            else:
                updated = document.model_copy(
                    update={"status": DocumentStatus.REJECTED, "locked_by": None, "locked_at": None}
                )
                event_type = "document.rejected"

            txn = transaction or Transaction(documents=self.documents)
            txn.put_document(updated)
            txn.after_commit(lambda: self._emit(event_type, updated, actor_id))
            if transaction is None:
                txn.commit()

        logger.info(f"Document {document_id} is now {updated.status.value}")
        return updated

    # ------------------------------------------------------------------

    def _emit(self, event_type: str, document: DocumentState, actor_id: Optional[str], **data) -> None:
        self.events.emit(
            WorkflowEvent(
                type=event_type,
                entity="document",
                entity_id=document.document_id,
                document_id=document.document_id,
                actor_id=actor_id,
                occurred_at=self.clock(),
                data={"status": document.status.value, **data},
            )
        )
