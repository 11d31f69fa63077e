"""Core domain types: models, identity, errors and locking."""

from .errors import (  # noqa: F401
    ErrorKind,
    WorkflowError,
    LockedError,
    AlreadyLockedError,
    StaleVersionError,
    InvalidStateError,
    InvalidTransitionError,
    UnauthorizedError,
    ForbiddenError,
    WrongStageError,
    NotPendingError,
    OutOfRangeError,
    NotFoundError,
    ValidationFailedError,
    ConsistencyError,
)
from .identity import ActorDirectory, Clock, ManualClock, SystemClock  # noqa: F401
from .locking import EntityLocks  # noqa: F401
from .models import (  # noqa: F401
    Actor,
    ActorRole,
    CheckIssue,
    CheckResult,
    ConflictStatus,
    Decision,
    DocumentState,
    DocumentStatus,
    IssueSeverity,
    ResolutionStrategy,
    ReviewRecord,
    ReviewStage,
    Revision,
    SaveResult,
    SaveStatus,
    StageDecision,
    TaskAssignment,
    TaskPriority,
    TaskStatus,
    WorkingCopy,
)
from .timeline import Timeline, TimelineEvent, TimelineEventType  # noqa: F401
