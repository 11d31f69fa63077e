"""Classify a client's working copy against the authoritative document."""

from __future__ import annotations

from ..core.models import ConflictStatus, DocumentState, WorkingCopy


class ConflictDetector:
    """Version-number based staleness detection.

    Any mismatch between the client's base version and the current
    version counts as a potential conflict, whatever the textual
    overlap.  Content is only compared to tell a harmless fast-forward
    (the client already holds the current text) from a real conflict.
    """

    def is_stale(self, base_version: int, document: DocumentState) -> bool:
        return base_version != document.version

    def classify(self, working_copy: WorkingCopy, document: DocumentState) -> ConflictStatus:
        if not self.is_stale(working_copy.base_version, document):
            return ConflictStatus.CLEAN
        if working_copy.content == document.content:
            return ConflictStatus.STALE
        return ConflictStatus.CONFLICTING
