"""Error kinds raised by the workflow core.

Every guard violation maps to one :class:`ErrorKind`.  Callers that
only care about the category can catch :class:`WorkflowError` and
switch on ``exc.kind``; the web layer and CLI do exactly that.

:class:`ConsistencyError` is not a :class:`WorkflowError`; it
means an invariant between two entities was found broken and the
enclosing transaction must be abandoned.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-readable error categories."""

    LOCKED = "locked"
    ALREADY_LOCKED = "already_locked"
    STALE_VERSION = "stale_version"
    INVALID_STATE = "invalid_state"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    WRONG_STAGE = "wrong_stage"
    NOT_PENDING = "not_pending"
    OUT_OF_RANGE = "out_of_range"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"


class WorkflowError(Exception):
    """Base class for recoverable, caller-side workflow errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, *, entity_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "detail": self.message, "entity_id": self.entity_id}


class LockedError(WorkflowError):
    kind = ErrorKind.LOCKED


class AlreadyLockedError(WorkflowError):
    kind = ErrorKind.ALREADY_LOCKED


class StaleVersionError(WorkflowError):
    """Raised by callers who prefer exceptions over a stale ``SaveResult``."""

    kind = ErrorKind.STALE_VERSION

    def __init__(
        self,
        message: str,
        *,
        entity_id: Optional[str] = None,
        current_version: Optional[int] = None,
        current_content: Optional[str] = None,
    ) -> None:
        super().__init__(message, entity_id=entity_id)
        self.current_version = current_version
        self.current_content = current_content


class InvalidStateError(WorkflowError):
    kind = ErrorKind.INVALID_STATE


class InvalidTransitionError(WorkflowError):
    kind = ErrorKind.INVALID_TRANSITION


class UnauthorizedError(WorkflowError):
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(WorkflowError):
    kind = ErrorKind.FORBIDDEN


class WrongStageError(WorkflowError):
    kind = ErrorKind.WRONG_STAGE


class NotPendingError(WorkflowError):
    kind = ErrorKind.NOT_PENDING


class OutOfRangeError(WorkflowError):
    kind = ErrorKind.OUT_OF_RANGE


class NotFoundError(WorkflowError):
    kind = ErrorKind.NOT_FOUND


class ValidationFailedError(WorkflowError):
    kind = ErrorKind.VALIDATION_FAILED


class ConsistencyError(RuntimeError):
    """Cross-entity invariant violated; the enclosing transaction is aborted."""
