"""Resolution of a stale save.

Three strategies are offered after a save came back stale: keep the
client's text, adopt the server's text, or write a payload the user
merged by hand.  No automatic merge is attempted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..core.errors import ValidationFailedError
from ..core.models import ResolutionStrategy, SaveResult, WorkingCopy
from ..events import WorkflowEvent
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..lifecycle.machine import DocumentLifecycle

logger = get_logger(__name__)


class MergeResolver:
    """Apply one of the resolution strategies through the lifecycle machine.

    Writes go through :meth:`DocumentLifecycle.save`, so lock checks
    and the compare-and-increment on ``version`` are the same as for a
    plain save.  ``expected_version`` is the version the user was shown
    alongside the conflict; if the document moved again since then the
    result is stale once more instead of silently discarding that write.
    """

    def __init__(self, lifecycle: "DocumentLifecycle") -> None:
        self.lifecycle = lifecycle

    def resolve_local(
        self,
        document_id: str,
        client_content: str,
        actor_id: str,
        expected_version: Optional[int] = None,
    ) -> SaveResult:
        """Overwrite the authoritative content with the client's version."""
        return self._overwrite(
            document_id, client_content, actor_id, expected_version, ResolutionStrategy.LOCAL
        )

    def resolve_remote(self, document_id: str, actor_id: str) -> WorkingCopy:
        """Drop the client's edits and rebase on the current document."""
        working = self.lifecycle.checkout(document_id, actor_id)
        self._announce(document_id, actor_id, ResolutionStrategy.REMOTE, working.base_version)
        logger.info(f"Conflict on {document_id} resolved by {actor_id}: kept remote v{working.base_version}")
        return working

    def resolve_manual(
        self,
        document_id: str,
        merged_content: str,
        actor_id: str,
        expected_version: Optional[int] = None,
    ) -> SaveResult:
        """Write content the caller merged by hand."""
        return self._overwrite(
            document_id, merged_content, actor_id, expected_version, ResolutionStrategy.MANUAL
        )

    def resolve(
        self,
        strategy: ResolutionStrategy,
        document_id: str,
        actor_id: str,
        content: Optional[str] = None,
        expected_version: Optional[int] = None,
    ):
        """Dispatch on ``strategy``; used by the CLI and web layer."""
        strategy = ResolutionStrategy(strategy)
        if strategy == ResolutionStrategy.REMOTE:
            return self.resolve_remote(document_id, actor_id)
        if content is None:
            raise ValidationFailedError(
                f"Resolution '{strategy.value}' needs content", entity_id=document_id
            )
        if strategy == ResolutionStrategy.LOCAL:
            return self.resolve_local(document_id, content, actor_id, expected_version)
        return self.resolve_manual(document_id, content, actor_id, expected_version)

    def _overwrite(
        self,
        document_id: str,
        content: str,
        actor_id: str,
        expected_version: Optional[int],
        strategy: ResolutionStrategy,
    ) -> SaveResult:
        lifecycle = self.lifecycle
        with lifecycle.locks.document(document_id):
            base = expected_version
            if base is None:
                base = lifecycle.get(document_id).version
            result = lifecycle.save(
                document_id,
                base,
                content,
                actor_id,
                summary=f"Conflict resolved ({strategy.value})",
            )
        if result.ok:
            self._announce(document_id, actor_id, strategy, result.version)
            logger.info(f"Conflict on {document_id} resolved by {actor_id}: {strategy.value} -> v{result.version}")
        return result

    def _announce(
        self, document_id: str, actor_id: str, strategy: ResolutionStrategy, version: int
    ) -> None:
        self.lifecycle.events.emit(
            WorkflowEvent(
                type="document.conflict_resolved",
                entity="document",
                entity_id=document_id,
                document_id=document_id,
                actor_id=actor_id,
                occurred_at=self.lifecycle.clock(),
                data={"strategy": strategy.value, "version": version},
            )
        )
