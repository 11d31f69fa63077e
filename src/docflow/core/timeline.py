"""Append-only event log used for task timelines and review histories."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence, overload

from pydantic import BaseModel, ConfigDict, GetCoreSchemaHandler
from pydantic_core import core_schema


class TimelineEventType(str, Enum):
    """Kinds of audit events recorded on a timeline."""

    # Task events
    ASSIGNED = "assigned"
    STARTED = "started"
    PROGRESS_UPDATED = "progress_updated"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    STATUS_CHANGED = "status_changed"

    # Review events
    SUBMITTED = "submitted"
    CHECKED = "checked"
    APPROVED = "approved"
    REJECTED = "rejected"
    TRANSFERRED = "transferred"


class TimelineEvent(BaseModel):
    """Immutable record of a single state change."""

    model_config = ConfigDict(frozen=True)

    type: TimelineEventType
    actor_id: str
    actor_name: str
    timestamp: datetime
    note: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    progress: Optional[int] = None


class Timeline(Sequence[TimelineEvent]):
    """Ordered event log supporting reads and ``append`` only.

    There is no way to remove, replace or reorder an entry once it has
    been appended; events themselves are frozen models.
    """

    __slots__ = ("_events",)

    def __init__(self, events: Optional[Sequence[TimelineEvent]] = None) -> None:
        self._events: List[TimelineEvent] = list(events or [])

    def append(self, event: TimelineEvent) -> TimelineEvent:
        if not isinstance(event, TimelineEvent):
            raise TypeError(f"Timeline only accepts TimelineEvent, got {type(event).__name__}")
        self._events.append(event)
        return event

    def latest(self) -> Optional[TimelineEvent]:
        return self._events[-1] if self._events else None

    def of_type(self, event_type: TimelineEventType) -> List[TimelineEvent]:
        return [e for e in self._events if e.type == event_type]

    @overload
    def __getitem__(self, index: int) -> TimelineEvent: ...

    @overload
    def __getitem__(self, index: slice) -> List[TimelineEvent]: ...

    def __getitem__(self, index):
        return self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[TimelineEvent]:
        return iter(list(self._events))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Timeline):
            return self._events == other._events
        if isinstance(other, list):
            return self._events == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Timeline({len(self._events)} events)"

    def __copy__(self) -> "Timeline":
        return Timeline(self._events)

    def __deepcopy__(self, memo: dict) -> "Timeline":
        # events are frozen; copies share them
        return Timeline(self._events)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        events_schema = handler.generate_schema(List[TimelineEvent])
        from_list = core_schema.no_info_after_validator_function(cls, events_schema)
        return core_schema.json_or_python_schema(
            json_schema=from_list,
            python_schema=core_schema.union_schema([core_schema.is_instance_schema(cls), from_list]),
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda timeline: list(timeline),
                return_schema=events_schema,
            ),
        )
