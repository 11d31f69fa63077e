"""Entity repositories, transactions and snapshots."""

from .base import DocumentStore, ReviewStore, TaskStore, Transaction  # noqa: F401
from .memory import InMemoryDocumentStore, InMemoryReviewStore, InMemoryTaskStore  # noqa: F401
from .snapshot import load_snapshot, save_snapshot  # noqa: F401
