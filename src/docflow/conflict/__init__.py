"""Conflict detection and resolution for concurrent edits."""

from ..core.models import ConflictStatus, ResolutionStrategy, WorkingCopy  # noqa: F401
from .detector import ConflictDetector  # noqa: F401
from .resolver import MergeResolver  # noqa: F401
