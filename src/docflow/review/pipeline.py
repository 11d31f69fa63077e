"""Sequential review pipeline.

Each submission gets one :class:`ReviewRecord` that moves through
``auto_check -> supervisor_review -> manager_review``.  The automated
check runs synchronously while the record is opened and never blocks;
the two human stages are decided by actors holding the matching role.
A terminal decision is committed together with the document's new
lifecycle state.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..core.errors import (
    InvalidStateError,
    NotFoundError,
    NotPendingError,
    UnauthorizedError,
    ValidationFailedError,
    WrongStageError,
)
from ..core.ids import review_id as new_review_id
from ..core.models import (
    ActorRole,
    Decision,
    DocumentState,
    ReviewRecord,
    ReviewStage,
    StageDecision,
)
from ..core.timeline import TimelineEvent, TimelineEventType
from ..events import WorkflowEvent
from ..lifecycle.machine import DocumentLifecycle
from ..policy import can_decide, stage_role
from ..store.base import ReviewStore, Transaction
from ..utils.logging import get_logger
from .checks import Checker, HeuristicChecker, run_check

logger = get_logger(__name__)


class ReviewPipeline:
    """Owns review records and drives stage decisions."""

    def __init__(
        self,
        reviews: ReviewStore,
        lifecycle: DocumentLifecycle,
        checker: Optional[Checker] = None,
        check_enabled: bool = True,
        reject_requires_comment: bool = True,
    ) -> None:
        self.reviews = reviews
        self.lifecycle = lifecycle
        self.checker = checker if checker is not None else HeuristicChecker()
        self.check_enabled = check_enabled
        self.reject_requires_comment = reject_requires_comment
        lifecycle.attach_pipeline(self)

    # Collaborators are shared with the lifecycle machine.
    @property
    def directory(self):
        return self.lifecycle.directory

    @property
    def clock(self):
        return self.lifecycle.clock

    @property
    def locks(self):
        return self.lifecycle.locks

    @property
    def events(self):
        return self.lifecycle.events

    # ------------------------------------------------------------------
    # Opening a review
    # ------------------------------------------------------------------

    def open(
        self,
        document: DocumentState,
        submitter_id: str,
        comment: Optional[str],
        supervisor_id: Optional[str],
        transaction: Transaction,
    ) -> ReviewRecord:
        """Build the record for a submission and stage it on ``transaction``.

        Called by :meth:`DocumentLifecycle.submit` while it holds the
        document lock; nothing is written until the caller commits.
        """
        if self.reviews.pending_for_document(document.document_id) is not None:
            logger.warning(f"Document {document.document_id} already has a pending review")
            raise InvalidStateError(
                f"Document {document.document_id} already has a review in flight",
                entity_id=document.document_id,
            )
        if supervisor_id is not None:
            self._require_role(supervisor_id, ReviewStage.SUPERVISOR_REVIEW)
            if supervisor_id == submitter_id:
                raise UnauthorizedError("Submitters cannot review their own document", entity_id=document.document_id)

        submitter = self.directory.get(submitter_id)
        submitted_at = self.clock()
        record = ReviewRecord(
            review_id=new_review_id(),
            document_id=document.document_id,
            document_title=document.title,
            document_version=document.version,
            submitter_id=submitter_id,
            submitted_at=submitted_at,
            submit_comment=comment or None,
            supervisor_decision=StageDecision(reviewer_id=supervisor_id),
        )
        record.history.append(
            TimelineEvent(
                type=TimelineEventType.SUBMITTED,
                actor_id=submitter_id,
                actor_name=submitter.name,
                timestamp=submitted_at,
                note=record.submit_comment,
                to_status=ReviewStage.AUTO_CHECK.value,
            )
        )

        record.auto_check = run_check(
            self.checker, document.content, enabled=self.check_enabled, clock=self.clock
        )
        record.current_stage = ReviewStage.SUPERVISOR_REVIEW
        record.history.append(
            TimelineEvent(
                type=TimelineEventType.CHECKED,
                actor_id="system",
                actor_name="Automated check",
                timestamp=self.clock(),
                note=record.auto_check.summary,
                from_status=ReviewStage.AUTO_CHECK.value,
                to_status=ReviewStage.SUPERVISOR_REVIEW.value,
            )
        )

        transaction.put_review(record)

        def announce() -> None:
            self._emit("review.created", record, submitter_id, version=record.document_version)
            self._emit(
                "review.checked",
                record,
                None,
                score=record.auto_check.score,
                failed=record.auto_check.failed,
                issues=record.auto_check.count_by_severity(),
            )

        transaction.after_commit(announce)
        logger.info(
            f"Opened review {record.review_id} for {document.document_id}: "
            f"check score {record.auto_check.score}"
        )
        return record

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        review_id: str,
        stage: ReviewStage,
        reviewer_id: str,
        decision: Decision,
        comment: Optional[str] = None,
    ) -> ReviewRecord:
        """Record a decision at ``stage``.

        Rejection at either stage ends the review; approval at the
        supervisor stage opens the manager stage; approval at the
        manager stage ends it.  Terminal outcomes are applied to the
        document in the same commit.
        """
        stage = ReviewStage(stage)
        decision = Decision(decision)
        if decision == Decision.PENDING:
            raise ValidationFailedError("Decision must be approved or rejected", entity_id=review_id)

        document_id = self.get(review_id).document_id
        with self.locks.hold(("document", document_id), ("review", review_id)):
            record = self.get(review_id)
            reviewer = self.directory.get(reviewer_id)

            if stage != record.current_stage:
                logger.warning(f"Decision on {review_id} at {stage.value}; current stage is {record.current_stage.value}")
                raise WrongStageError(
                    f"Review {review_id} is at {record.current_stage.value}, not {stage.value}",
                    entity_id=review_id,
                )
            slot = record.stage_decision(stage)
            if not can_decide(reviewer.role, stage):
                logger.warning(f"{reviewer_id} ({reviewer.role.value}) may not decide {stage.value}")
                raise UnauthorizedError(
                    f"{reviewer.name} cannot decide at {stage.value}", entity_id=review_id
                )
            if reviewer_id == record.submitter_id:
                raise UnauthorizedError("Submitters cannot review their own document", entity_id=review_id)
            if record.is_terminal or slot is None or slot.decision != Decision.PENDING:
                logger.warning(f"Decision on {review_id} at {stage.value} already recorded")
                raise NotPendingError(
                    f"Review {review_id} already has a decision at {stage.value}", entity_id=review_id
                )
            if slot.reviewer_id is not None and slot.reviewer_id != reviewer_id:
                raise UnauthorizedError(
                    f"Review {review_id} is assigned to {slot.reviewer_id} at {stage.value}",
                    entity_id=review_id,
                )
            comment = (comment or "").strip() or None
            if decision == Decision.REJECTED and self.reject_requires_comment and not comment:
                raise ValidationFailedError("A rejection needs a comment explaining why", entity_id=review_id)

            now = self.clock()
            updated = record.model_copy(deep=True)
            decided = StageDecision(
                reviewer_id=reviewer_id, decision=decision, comment=comment, decided_at=now
            )
            if stage == ReviewStage.SUPERVISOR_REVIEW:
                updated.supervisor_decision = decided
            else:
                updated.manager_decision = decided
            updated.history.append(
                TimelineEvent(
                    type=(
                        TimelineEventType.APPROVED
                        if decision == Decision.APPROVED
                        else TimelineEventType.REJECTED
                    ),
                    actor_id=reviewer_id,
                    actor_name=reviewer.name,
                    timestamp=now,
                    note=comment,
                    from_status=stage.value,
                )
            )

            txn = Transaction(documents=self.lifecycle.documents, reviews=self.reviews)
            txn.after_commit(
                lambda: self._emit(
                    "review.decided",
                    updated,
                    reviewer_id,
                    stage=stage.value,
                    decision=decision.value,
                    comment=comment,
                )
            )

            if decision == Decision.APPROVED and stage == ReviewStage.SUPERVISOR_REVIEW:
                updated.current_stage = ReviewStage.MANAGER_REVIEW
                updated.manager_decision = StageDecision()
                txn.after_commit(
                    lambda: self._emit("review.advanced", updated, reviewer_id, stage=updated.current_stage.value)
                )
            else:
                updated.final_status = decision
                updated.completed_at = now
                self.lifecycle.apply_review_outcome(
                    document_id, decision, transaction=txn, actor_id=reviewer_id
                )
                txn.after_commit(
                    lambda: self._emit("review.completed", updated, reviewer_id, final_status=decision.value)
                )

            txn.put_review(updated)
            txn.commit()

        logger.info(f"Review {review_id}: {stage.value} {decision.value} by {reviewer_id}")
        return updated

    def transfer(
        self,
        review_id: str,
        from_reviewer_id: str,
        to_reviewer_id: str,
        comment: Optional[str] = None,
    ) -> ReviewRecord:
        """Hand the pending decision at the current stage to another reviewer."""
        with self.locks.review(review_id):
            record = self.get(review_id)
            if record.is_terminal:
                raise NotPendingError(f"Review {review_id} is already {record.final_status.value}", entity_id=review_id)
            stage = record.current_stage
            slot = record.current_decision()
            if slot is None or slot.decision != Decision.PENDING:
                raise NotPendingError(f"Review {review_id} has no pending decision", entity_id=review_id)

            source = self.directory.get(from_reviewer_id)
            if slot.reviewer_id is not None:
                allowed = slot.reviewer_id == from_reviewer_id
            else:
                allowed = can_decide(source.role, stage)
            if not allowed:
                logger.warning(f"{from_reviewer_id} may not transfer review {review_id}")
                raise UnauthorizedError(
                    f"{source.name} does not hold the {stage.value} decision of {review_id}",
                    entity_id=review_id,
                )
            target = self._require_role(to_reviewer_id, stage)
            if to_reviewer_id == record.submitter_id:
                raise UnauthorizedError("Submitters cannot review their own document", entity_id=review_id)
            if to_reviewer_id == from_reviewer_id:
                raise ValidationFailedError("Cannot transfer a review to the same reviewer", entity_id=review_id)

            now = self.clock()
            updated = record.model_copy(deep=True)
            reassigned = slot.model_copy(update={"reviewer_id": to_reviewer_id})
            if stage == ReviewStage.SUPERVISOR_REVIEW:
                updated.supervisor_decision = reassigned
            else:
                updated.manager_decision = reassigned
            updated.history.append(
                TimelineEvent(
                    type=TimelineEventType.TRANSFERRED,
                    actor_id=from_reviewer_id,
                    actor_name=source.name,
                    timestamp=now,
                    note=comment,
                    from_status=stage.value,
                    to_status=stage.value,
                )
            )

            txn = Transaction(reviews=self.reviews)
            txn.put_review(updated)
            txn.after_commit(
                lambda: self._emit(
                    "review.transferred",
                    updated,
                    from_reviewer_id,
                    stage=stage.value,
                    to_reviewer_id=to_reviewer_id,
                    comment=comment,
                )
            )
            txn.commit()

        logger.info(f"Review {review_id} transferred from {from_reviewer_id} to {target.actor_id}")
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, review_id: str) -> ReviewRecord:
        record = self.reviews.get(review_id)
        if record is None:
            raise NotFoundError(f"Review {review_id} not found", entity_id=review_id)
        return record

    def pending_for(self, reviewer_id: str) -> List[ReviewRecord]:
        """Reviews waiting on ``reviewer_id`` at their current stage."""
        reviewer = self.directory.get(reviewer_id)
        pending = []
        for record in self.reviews.list():
            if record.is_terminal or record.submitter_id == reviewer_id:
                continue
            if not can_decide(reviewer.role, record.current_stage):
                continue
            slot = record.current_decision()
            if slot is None or slot.decision != Decision.PENDING:
                continue
            if slot.reviewer_id in (None, reviewer_id):
                pending.append(record)
        return _by_submission(pending)

    def submitted_by(self, submitter_id: str) -> List[ReviewRecord]:
        return _by_submission(r for r in self.reviews.list() if r.submitter_id == submitter_id)

    def for_document(self, document_id: str) -> List[ReviewRecord]:
        return _by_submission(self.reviews.for_document(document_id))

    def active_for_document(self, document_id: str) -> Optional[ReviewRecord]:
        return self.reviews.pending_for_document(document_id)

    def completed(self) -> List[ReviewRecord]:
        return _by_submission(r for r in self.reviews.list() if r.is_terminal)

    def all(self) -> List[ReviewRecord]:
        return _by_submission(self.reviews.list())

    @staticmethod
    def issue_counts(record: ReviewRecord) -> Dict[str, int]:
        return record.auto_check.count_by_severity()

    # ------------------------------------------------------------------

    def _require_role(self, actor_id: str, stage: ReviewStage):
        actor = self.directory.get(actor_id)
        if not can_decide(actor.role, stage):
            role: Optional[ActorRole] = stage_role(stage)
            raise UnauthorizedError(
                f"{actor.name} is not a {role.value if role else 'reviewer'} and cannot review at {stage.value}",
                entity_id=actor_id,
            )
        return actor

    def _emit(self, event_type: str, record: ReviewRecord, actor_id: Optional[str], **data) -> None:
        self.events.emit(
            WorkflowEvent(
                type=event_type,
                entity="review",
                entity_id=record.review_id,
                document_id=record.document_id,
                actor_id=actor_id,
                occurred_at=self.clock(),
                data=data,
            )
        )


def _by_submission(records) -> List[ReviewRecord]:
    return sorted(records, key=lambda r: r.submitted_at)
