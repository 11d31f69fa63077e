"""Clock and actor identity providers.

Every component receives a clock and an actor directory rather than
calling ``datetime.now`` or looking users up on its own, so audit
fields are reproducible under test.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .errors import NotFoundError
from .models import Actor, ActorRole

Clock = Callable[[], datetime]


class SystemClock:
    """Wall clock in UTC."""

    def __call__(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Deterministic clock for tests and replays.

    Each call returns the current instant and then advances it by
    ``step``, so consecutive timestamps are strictly increasing unless
    ``step`` is zero.
    """

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if self._now.tzinfo is None:
            self._now = self._now.replace(tzinfo=timezone.utc)
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            now = self._now
            self._now = now + self.step
            return now

    def peek(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        with self._lock:
            self._now += delta

    def set(self, instant: datetime) -> None:
        with self._lock:
            self._now = instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)


class ActorDirectory:
    """In-memory lookup of actors by id."""

    def __init__(self, actors: Optional[Iterable[Actor]] = None) -> None:
        self._actors: Dict[str, Actor] = {}
        for actor in actors or []:
            self.add(actor)

    def add(self, actor: Actor) -> Actor:
        self._actors[actor.actor_id] = actor
        return actor

    def get(self, actor_id: str) -> Actor:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise NotFoundError(f"Unknown actor {actor_id}", entity_id=actor_id)
        return actor

    def find(self, actor_id: str) -> Optional[Actor]:
        return self._actors.get(actor_id)

    def name_of(self, actor_id: str) -> str:
        actor = self._actors.get(actor_id)
        return actor.name if actor else actor_id

    def with_role(self, role: ActorRole) -> List[Actor]:
        return [a for a in self._actors.values() if a.role == role]

    def all(self) -> List[Actor]:
        return list(self._actors.values())

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._actors

    def __len__(self) -> int:
        return len(self._actors)
