"""Core domain models for documents, reviews and task assignments."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, field_validator

from .errors import StaleVersionError
from .ids import count_words
from .timeline import Timeline, TimelineEvent, TimelineEventType  # noqa: F401


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# -----------------------------------------------------------------------------
# Actors
# -----------------------------------------------------------------------------

class ActorRole(str, Enum):
    """Organisational role of an actor."""

    MANAGER = "manager"
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"


class Actor(BaseModel):
    """A person acting on documents, reviews and tasks."""

    actor_id: str
    name: str
    role: ActorRole
    department: Optional[str] = None


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------

class DocumentStatus(str, Enum):
    """Lifecycle status of a document."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentState(BaseModel):
    """Authoritative state of a shared document.

    ``locked_by`` is set exactly while the document is under review or
    published; content writes are accepted only while it is unset and
    the document is a draft.
    """

    document_id: str
    title: str
    content: str = ""
    version: int = Field(1, ge=1)
    status: DocumentStatus = DocumentStatus.DRAFT
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None

    project_id: Optional[str] = None
    folder_id: Optional[str] = None

    created_by: str
    created_at: datetime
    updated_by: str
    updated_at: datetime

    @field_validator("locked_at", "created_at", "updated_at")
    @classmethod
    def _normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @property
    def word_count(self) -> int:
        return count_words(self.content)

    @property
    def is_locked(self) -> bool:
        return self.locked_by is not None

    @property
    def is_editable(self) -> bool:
        return self.status == DocumentStatus.DRAFT and self.locked_by is None


class Revision(BaseModel):
    """Immutable snapshot of a document at one accepted version."""

    document_id: str
    version: int = Field(..., ge=1)
    content: str
    author_id: str
    created_at: datetime
    summary: Optional[str] = None


class WorkingCopy(BaseModel):
    """A client's ``(base_version, content)`` pair obtained at last sync."""

    document_id: str
    actor_id: str
    base_version: int = Field(..., ge=1)
    content: str


class ConflictStatus(str, Enum):
    """Classification of a working copy against the authoritative document."""

    CLEAN = "clean"
    STALE = "stale"
    CONFLICTING = "conflicting"


class SaveStatus(str, Enum):
    SAVED = "saved"
    STALE = "stale"


class ResolutionStrategy(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    MANUAL = "manual"


class SaveResult(BaseModel):
    """Outcome of a content write.

    A stale result is an expected outcome of concurrent editing, so it
    is returned rather than raised.  It carries what the caller needs
    to show both sides of the conflict.
    """

    status: SaveStatus
    document_id: str
    version: int
    working_copy: Optional[WorkingCopy] = None
    current_content: Optional[str] = None
    conflict: ConflictStatus = ConflictStatus.CLEAN

    @property
    def ok(self) -> bool:
        return self.status == SaveStatus.SAVED

    def raise_for_status(self) -> "SaveResult":
        if self.status == SaveStatus.STALE:
            raise StaleVersionError(
                f"Document {self.document_id} changed since your last sync (now v{self.version})",
                entity_id=self.document_id,
                current_version=self.version,
                current_content=self.current_content,
            )
        return self


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------

class ReviewStage(str, Enum):
    """Fixed, sequential review stages."""

    AUTO_CHECK = "auto_check"
    SUPERVISOR_REVIEW = "supervisor_review"
    MANAGER_REVIEW = "manager_review"


class Decision(str, Enum):
    """Decision state of a review stage or of the review as a whole."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class CheckIssue(BaseModel):
    """One finding of the automated pre-check."""

    severity: IssueSeverity
    title: str
    description: str
    category: Optional[str] = None
    location: Optional[str] = None
    suggestion: Optional[str] = None


class CheckResult(BaseModel):
    """Advisory result of the automated pre-check; never blocks progression."""

    score: int = Field(0, ge=0, le=100)
    issues: List[CheckIssue] = Field(default_factory=list)
    summary: Optional[str] = None
    checked_at: Optional[datetime] = None
    failed: bool = False

    def count_by_severity(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in IssueSeverity}
        for issue in self.issues:
            counts[issue.severity.value] += 1
        return counts


class StageDecision(BaseModel):
    """Decision slot of one human review stage."""

    reviewer_id: Optional[str] = None
    decision: Decision = Decision.PENDING
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None


class ReviewRecord(BaseModel):
    """Approval record of one submission of a document."""

    review_id: str
    document_id: str
    document_title: str
    document_version: int
    submitter_id: str
    submitted_at: datetime
    submit_comment: Optional[str] = None

    auto_check: CheckResult = Field(default_factory=CheckResult)
    current_stage: ReviewStage = ReviewStage.AUTO_CHECK
    supervisor_decision: StageDecision = Field(default_factory=StageDecision)
    manager_decision: Optional[StageDecision] = None

    final_status: Decision = Decision.PENDING
    completed_at: Optional[datetime] = None
    history: Timeline = Field(default_factory=Timeline)

    @property
    def is_terminal(self) -> bool:
        return self.final_status != Decision.PENDING

    def stage_decision(self, stage: ReviewStage) -> Optional[StageDecision]:
        if stage == ReviewStage.SUPERVISOR_REVIEW:
            return self.supervisor_decision
        if stage == ReviewStage.MANAGER_REVIEW:
            return self.manager_decision
        return None

    def current_decision(self) -> Optional[StageDecision]:
        return self.stage_decision(self.current_stage)


# -----------------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------------

class TaskPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskAssignment(BaseModel):
    """Authorship work delegated on a document."""

    task_id: str
    document_id: str
    document_title: str
    title: str
    description: Optional[str] = None

    assigner_id: str
    assigner_name: str
    assignee_id: str
    assignee_name: str
    assigned_at: datetime

    priority: TaskPriority = TaskPriority.NORMAL
    due_date: Optional[datetime] = None
    status: TaskStatus = TaskStatus.TODO
    progress: int = Field(0, ge=0, le=100)
    timeline: Timeline = Field(default_factory=Timeline)

    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("assigned_at", "due_date", "created_at", "updated_at", "completed_at")
    @classmethod
    def _normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    def is_overdue(self, now: datetime) -> bool:
        """Overdue is derived at read time, never stored."""
        if self.due_date is None or self.status == TaskStatus.COMPLETED:
            return False
        return _as_utc(now) > self.due_date
