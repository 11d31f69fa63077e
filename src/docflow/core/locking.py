"""Per-entity serialization points."""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Iterator, Tuple

EntityKey = Tuple[str, str]

# Acquisition order across entity kinds; anything else sorts last.
_KIND_ORDER = {"document": 0, "review": 1, "task": 2}


class _Gate:
    """Shared/exclusive gate.  Nested shared entries never wait."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._shared = 0
        self._exclusive = False

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive:
                self._cond.wait()
            self._shared += 1
        try:
            yield
        finally:
            with self._cond:
                self._shared -= 1
                if not self._shared:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive or self._shared:
                self._cond.wait()
            self._exclusive = True
        try:
            yield
        finally:
            with self._cond:
                self._exclusive = False
                self._cond.notify_all()


class EntityLocks:
    """One re-entrant lock per ``(kind, entity_id)``.

    Operations on the same entity are serialized; operations on
    different entities never contend.  When several entities are held
    at once they are always acquired in the same global order
    (documents, then reviews, then tasks, then by id).

    :meth:`quiesce` waits until no entity is held and keeps new holds
    out while a whole-workspace read such as a snapshot runs.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[EntityKey, threading.RLock] = {}
        self._gate = _Gate()

    def lock_for(self, kind: str, entity_id: str) -> threading.RLock:
        key = (kind, entity_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *keys: EntityKey) -> Iterator[None]:
        ordered = sorted(set(keys), key=lambda k: (_KIND_ORDER.get(k[0], 99), k[1]))
        with ExitStack() as stack:
            stack.enter_context(self._gate.shared())
            for kind, entity_id in ordered:
                stack.enter_context(self.lock_for(kind, entity_id))
            yield

    @contextmanager
    def quiesce(self) -> Iterator[None]:
        """Hold off every entity operation.  Must not be entered while holding an entity."""
        with self._gate.exclusive():
            yield

    def document(self, document_id: str):
        return self.hold(("document", document_id))

    def review(self, review_id: str):
        return self.hold(("review", review_id))

    def task(self, task_id: str):
        return self.hold(("task", task_id))
