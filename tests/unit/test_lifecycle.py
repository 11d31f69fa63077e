"""Unit tests for the document lifecycle machine."""

import pytest

from docflow.collab import Workspace
from docflow.core import (
    ActorDirectory,
    AlreadyLockedError,
    ConsistencyError,
    Decision,
    DocumentStatus,
    InvalidStateError,
    LockedError,
    ManualClock,
    NotFoundError,
    ReviewStage,
    SaveStatus,
    ValidationFailedError,
)
from docflow.lifecycle import DocumentLifecycle
from docflow.store import InMemoryDocumentStore


def reject(workspace, review):
    return workspace.decide(review.review_id, ReviewStage.SUPERVISOR_REVIEW, "sam", Decision.REJECTED, "needs work")


class TestCreate:
    """Tests for document creation."""

    def test_create_draft(self, workspace, clock) -> None:
        """New documents are drafts at v1 with a first revision."""
        doc = workspace.create_document("  Plan  ", "hello", "alice", project_id="p1")
        assert doc.title == "Plan"
        assert doc.version == 1
        assert doc.status == DocumentStatus.DRAFT
        assert doc.created_by == doc.updated_by == "alice"
        assert doc.project_id == "p1"
        history = workspace.history(doc.document_id)
        assert [(r.version, r.summary) for r in history] == [(1, "Created")]
        assert workspace.audit.types() == ["document.created"]

    def test_create_requires_title(self, workspace) -> None:
        """An empty title is rejected."""
        with pytest.raises(ValidationFailedError):
            workspace.create_document("   ", "hello", "alice")

    def test_create_unknown_actor(self, workspace) -> None:
        """Unknown actors cannot create documents."""
        with pytest.raises(NotFoundError):
            workspace.create_document("Plan", "hello", "ghost")


class TestSave:
    """Tests for content writes."""

    def test_save_increments_version(self, workspace, draft) -> None:
        """An accepted write bumps the version by one and records the author."""
        result = workspace.save(draft.document_id, 1, "second", "bob", summary="edit")
        assert result.status == SaveStatus.SAVED
        assert result.version == 2
        doc = workspace.get_document(draft.document_id)
        assert (doc.version, doc.content, doc.updated_by) == (2, "second", "bob")
        assert doc.updated_at > draft.updated_at
        assert workspace.history(draft.document_id)[0].summary == "edit"

    def test_versions_strictly_increase(self, workspace, draft) -> None:
        """Sequential saves produce consecutive versions without gaps."""
        versions = []
        for i in range(10):
            current = workspace.checkout(draft.document_id, "alice").base_version
            versions.append(workspace.save(draft.document_id, current, f"edit {i}", "alice").version)
        assert versions == list(range(2, 12))
        assert [r.version for r in reversed(workspace.history(draft.document_id))] == list(range(1, 12))

    def test_save_unknown_document(self, workspace) -> None:
        """Saving an unknown document raises NotFoundError."""
        with pytest.raises(NotFoundError):
            workspace.save("doc_missing", 1, "x", "alice")

    def test_invalid_base_version(self, workspace, draft) -> None:
        """Base versions start at 1."""
        with pytest.raises(ValidationFailedError):
            workspace.save(draft.document_id, 0, "x", "alice")

    def test_save_after_submit_is_locked(self, workspace, draft, review) -> None:
        """The submitter cannot keep editing a document under review."""
        with pytest.raises(LockedError):
            workspace.save(draft.document_id, 1, "sneaky edit", "alice")
        assert workspace.get_document(draft.document_id).content == "initial content"

    def test_save_on_rejected_is_locked(self, workspace, draft, review) -> None:
        """A rejected document must be re-edited before saving."""
        reject(workspace, review)
        with pytest.raises(LockedError):
            workspace.save(draft.document_id, 1, "fix", "alice")

    def test_checkout(self, workspace, draft) -> None:
        """checkout returns the current version and content."""
        working = workspace.checkout(draft.document_id, "bob")
        assert (working.base_version, working.content, working.actor_id) == (1, "initial content", "bob")


class TestHistory:
    """Tests for revision history and restore."""

    def test_restore_creates_new_version(self, workspace, draft) -> None:
        """Restoring writes old content as a new version."""
        workspace.save(draft.document_id, 1, "second", "alice")
        result = workspace.restore(draft.document_id, 1, "alice", base_version=2)
        assert result.version == 3
        doc = workspace.get_document(draft.document_id)
        assert doc.content == "initial content"
        history = workspace.history(draft.document_id)
        assert [r.version for r in history] == [3, 2, 1]
        assert history[0].summary == "Restored from v1"

    def test_restore_from_stale_base(self, workspace, draft) -> None:
        """Restore goes through the normal version check."""
        workspace.save(draft.document_id, 1, "second", "alice")
        result = workspace.restore(draft.document_id, 1, "alice", base_version=1)
        assert result.status == SaveStatus.STALE

    def test_missing_revision(self, workspace, draft) -> None:
        """Unknown revisions raise NotFoundError."""
        with pytest.raises(NotFoundError):
            workspace.revision(draft.document_id, 7)


class TestSubmit:
    """Tests for submission."""

    def test_submit_locks_document(self, workspace, draft, review) -> None:
        """Submitting locks the draft and opens one review."""
        doc = workspace.get_document(draft.document_id)
        assert doc.status == DocumentStatus.PENDING_REVIEW
        assert doc.locked_by == "alice"
        assert doc.locked_at is not None
        assert review.document_version == 1
        assert review.submit_comment == "please review"
        assert workspace.active_review(draft.document_id).review_id == review.review_id

    def test_submit_emits_after_commit(self, workspace, draft, review) -> None:
        """Submit announces the document change before the review events."""
        assert workspace.audit.types()[-3:] == ["document.submitted", "review.created", "review.checked"]

    def test_submit_twice(self, workspace, draft, review) -> None:
        """Only drafts can be submitted."""
        with pytest.raises(InvalidStateError):
            workspace.submit(draft.document_id, "alice")

    def test_submit_locked_draft(self, workspace, draft) -> None:
        """A draft that somehow carries a lock reports AlreadyLocked."""
        stuck = workspace.get_document(draft.document_id).model_copy(update={"locked_by": "bob"})
        workspace.documents.put(stuck)
        with pytest.raises(AlreadyLockedError):
            workspace.submit(draft.document_id, "alice")

    def test_submit_without_pipeline(self, actors, clock) -> None:
        """A lifecycle machine needs a review pipeline to submit."""
        lifecycle = DocumentLifecycle(InMemoryDocumentStore(), ActorDirectory(actors), clock=clock)
        doc = lifecycle.create("Plan", "text", "alice")
        with pytest.raises(RuntimeError):
            lifecycle.submit(doc.document_id, "alice")


class TestReEdit:
    """Tests for returning a rejected document to draft."""

    def test_re_edit_after_rejection(self, workspace, draft, review) -> None:
        """A rejected document becomes an unlocked draft at the same version."""
        reject(workspace, review)
        rejected = workspace.get_document(draft.document_id)
        assert rejected.status == DocumentStatus.REJECTED
        assert rejected.locked_by is None

        doc = workspace.re_edit(draft.document_id, "alice")
        assert doc.status == DocumentStatus.DRAFT
        assert doc.locked_by is None
        assert doc.version == 1
        assert workspace.save(draft.document_id, 1, "fixed", "alice").ok

    def test_re_edit_requires_rejection(self, workspace, draft) -> None:
        """Drafts cannot be re-edited."""
        with pytest.raises(InvalidStateError):
            workspace.re_edit(draft.document_id, "alice")


class TestApplyReviewOutcome:
    """Tests for the pipeline callback."""

    def test_outcome_on_draft_is_consistency_error(self, workspace, draft) -> None:
        """Applying an outcome to a draft aborts without writing."""
        with pytest.raises(ConsistencyError):
            workspace.lifecycle.apply_review_outcome(draft.document_id, Decision.APPROVED)
        assert workspace.get_document(draft.document_id).status == DocumentStatus.DRAFT

    def test_pending_outcome_refused(self, workspace, draft, review) -> None:
        """Only terminal outcomes can be applied."""
        with pytest.raises(ValidationFailedError):
            workspace.lifecycle.apply_review_outcome(draft.document_id, Decision.PENDING)

    def test_standalone_approval(self, workspace, draft, review) -> None:
        """Without a transaction the outcome is committed directly."""
        doc = workspace.lifecycle.apply_review_outcome(draft.document_id, Decision.APPROVED)
        assert doc.status == DocumentStatus.APPROVED
        assert workspace.get_document(draft.document_id).locked_by == "alice"


class TestEvents:
    """Lifecycle transitions produce audit events."""

    def test_save_event(self, workspace, draft) -> None:
        """A saved write is announced with its version."""
        workspace.save(draft.document_id, 1, "second", "alice")
        event = workspace.audit.of_type("document.saved")[-1]
        assert event.entity == "document"
        assert event.document_id == draft.document_id
        assert event.data["version"] == 2

    def test_rejected_save_emits_nothing(self, workspace, draft, review) -> None:
        """A guard violation leaves no event behind."""
        before = len(workspace.audit.events)
        with pytest.raises(LockedError):
            workspace.save(draft.document_id, 1, "x", "alice")
        assert len(workspace.audit.events) == before

    def test_clock_feeds_audit_fields(self, actors) -> None:
        """Timestamps come from the injected clock."""
        clock = ManualClock()
        ws = Workspace(actors=actors, clock=clock)
        doc = ws.create_document("Plan", "x", "alice")
        assert doc.created_at.year == 2024
