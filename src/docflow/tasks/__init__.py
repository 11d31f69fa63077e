"""Task delegation with an append-only audit timeline."""

from ..core.timeline import Timeline, TimelineEvent, TimelineEventType  # noqa: F401
from .tracker import TRANSITIONS, TaskTracker  # noqa: F401
