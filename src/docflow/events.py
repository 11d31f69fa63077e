"""Notification and audit events.

Every committed state transition produces one :class:`WorkflowEvent`.
Delivery and persistence belong to whoever implements
:class:`EventSink`; the core only guarantees that events are emitted
after the owning write has been committed.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from .core.ids import event_id
from .utils.logging import get_logger

logger = get_logger(__name__)


class WorkflowEvent(BaseModel):
    """One state transition, in the shape shared by all components."""

    event_id: str = Field(default_factory=event_id)
    type: str
    entity: str  # 'document', 'review' or 'task'
    entity_id: str
    document_id: str
    actor_id: Optional[str] = None
    occurred_at: datetime
    data: Dict[str, Any] = Field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: WorkflowEvent) -> None: ...


class InMemoryEventSink:
    """Collects events in memory, mostly for tests and the web API."""

    def __init__(self) -> None:
        self.events: List[WorkflowEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: WorkflowEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: str) -> List[WorkflowEvent]:
        with self._lock:
            return [e for e in self.events if e.type == event_type]

    def for_entity(self, entity_id: str) -> List[WorkflowEvent]:
        with self._lock:
            return [e for e in self.events if e.entity_id == entity_id]

    def types(self) -> List[str]:
        with self._lock:
            return [e.type for e in self.events]


class LoggingEventSink:
    """Writes each event to the structured log."""

    def __init__(self, name: str = "docflow.audit") -> None:
        self._logger = get_logger(name)

    def emit(self, event: WorkflowEvent) -> None:
        self._logger.info(
            f"{event.type} {event.entity}={event.entity_id} by {event.actor_id or '-'}",
            extra={"extra": event.model_dump(mode="json")},
        )


class FanOutSink:
    """Forward every event to several sinks; a failing sink does not stop the others."""

    def __init__(self, *sinks: EventSink) -> None:
        self.sinks = list(sinks)

    def emit(self, event: WorkflowEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as exc:
                logger.warning(f"Event sink {type(sink).__name__} failed on {event.type}: {exc}")
