"""Unit tests for conflict detection and resolution."""

import pytest

from docflow.conflict import ConflictDetector, ConflictStatus, ResolutionStrategy, WorkingCopy
from docflow.core import LockedError, SaveStatus, ValidationFailedError


@pytest.fixture
def diverged(workspace, draft):
    """Alice holds v1 while Bob has already saved v2."""
    alice_copy = workspace.checkout(draft.document_id, "alice")
    workspace.save(draft.document_id, 1, "bob's text", "bob")
    return alice_copy


class TestConflictDetector:
    """Tests for ConflictDetector.classify."""

    def test_classification(self, workspace, draft) -> None:
        """Same version is clean; otherwise content decides stale vs conflicting."""
        detector = ConflictDetector()
        workspace.save(draft.document_id, 1, "current", "bob")
        doc = workspace.get_document(draft.document_id)

        def copy(base, content):
            return WorkingCopy(document_id=doc.document_id, actor_id="alice", base_version=base, content=content)

        assert detector.classify(copy(2, "anything"), doc) == ConflictStatus.CLEAN
        assert detector.classify(copy(1, "current"), doc) == ConflictStatus.STALE
        assert detector.classify(copy(1, "mine"), doc) == ConflictStatus.CONFLICTING


class TestStaleSave:
    """A save from an outdated base is returned as stale."""

    def test_stale_save_keeps_remote(self, workspace, draft, diverged) -> None:
        """The document keeps Bob's write and the result shows it."""
        result = workspace.save(draft.document_id, diverged.base_version, "alice's text", "alice")
        assert result.status == SaveStatus.STALE
        assert result.version == 2
        assert result.current_content == "bob's text"
        assert result.conflict == ConflictStatus.CONFLICTING
        assert result.working_copy.content == "alice's text"

        doc = workspace.get_document(draft.document_id)
        assert doc.version == 2
        assert doc.content == "bob's text"
        assert "document.conflict_detected" in workspace.audit.types()

    def test_stale_with_same_content(self, workspace, draft, diverged) -> None:
        """Writing what is already there from an old base is classified stale."""
        result = workspace.save(draft.document_id, 1, "bob's text", "alice")
        assert result.conflict == ConflictStatus.STALE


class TestMergeResolver:
    """Tests for the three resolution strategies."""

    def test_resolve_local(self, workspace, draft, diverged) -> None:
        """Local wins: the client's text becomes a new version."""
        stale = workspace.save(draft.document_id, 1, "alice's text", "alice")
        result = workspace.resolve_local(draft.document_id, "alice's text", "alice", expected_version=stale.version)
        assert result.ok
        assert result.version == 3
        assert result.working_copy.base_version == 3
        doc = workspace.get_document(draft.document_id)
        assert doc.content == "alice's text"
        resolved = workspace.audit.of_type("document.conflict_resolved")
        assert resolved[-1].data["strategy"] == "local"

    def test_resolve_local_detects_newer_write(self, workspace, draft, diverged) -> None:
        """A resolution based on an outdated view comes back stale again."""
        workspace.save(draft.document_id, 2, "carol's text", "bob")
        result = workspace.resolve_local(draft.document_id, "alice's text", "alice", expected_version=2)
        assert result.status == SaveStatus.STALE
        assert result.version == 3
        assert workspace.get_document(draft.document_id).content == "carol's text"

    def test_resolve_local_without_expected_version(self, workspace, draft, diverged) -> None:
        """Without an expected version the current one is overwritten."""
        result = workspace.resolve_local(draft.document_id, "alice's text", "alice")
        assert result.ok
        assert workspace.get_document(draft.document_id).content == "alice's text"

    def test_resolve_remote(self, workspace, draft, diverged) -> None:
        """Remote wins: no write, the client rebases on the current version."""
        working = workspace.resolve_remote(draft.document_id, "alice")
        assert working.base_version == 2
        assert working.content == "bob's text"
        assert workspace.get_document(draft.document_id).version == 2
        assert workspace.audit.of_type("document.conflict_resolved")[-1].data["strategy"] == "remote"

    def test_resolve_manual(self, workspace, draft, diverged) -> None:
        """A hand-merged payload is written as a new version."""
        result = workspace.resolve_manual(draft.document_id, "merged", "alice", expected_version=2)
        assert result.ok
        doc = workspace.get_document(draft.document_id)
        assert (doc.version, doc.content) == (3, "merged")
        assert workspace.history(draft.document_id)[0].summary == "Conflict resolved (manual)"

    def test_resolution_respects_lock(self, workspace, draft, diverged) -> None:
        """Resolving on a submitted document still fails the lock check."""
        workspace.submit(draft.document_id, "bob")
        with pytest.raises(LockedError):
            workspace.resolve_local(draft.document_id, "alice's text", "alice")

    def test_dispatch_requires_content(self, workspace, draft) -> None:
        """Local and manual strategies need content."""
        with pytest.raises(ValidationFailedError):
            workspace.resolve(ResolutionStrategy.LOCAL, draft.document_id, "alice")
        working = workspace.resolve(ResolutionStrategy.REMOTE, draft.document_id, "alice")
        assert working.base_version == 1
