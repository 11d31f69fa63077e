"""JSON snapshots of a whole workspace.

The CLI keeps its state between invocations by dumping every store to
one JSON file and loading it back on the next run.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from ..core.identity import ActorDirectory
from ..core.models import Actor, DocumentState, ReviewRecord, Revision, TaskAssignment
from ..utils.logging import get_logger
from .base import DocumentStore, ReviewStore, TaskStore

logger = get_logger(__name__)

SNAPSHOT_FORMAT = 1


def save_snapshot(
    path: Path,
    *,
    directory: ActorDirectory,
    documents: DocumentStore,
    reviews: ReviewStore,
    tasks: TaskStore,
) -> Dict[str, int]:
    """Write every entity to ``path`` and return per-table counts."""
    docs = documents.list()
    state = {
        "format": SNAPSHOT_FORMAT,
        "saved_at": datetime.now(timezone.utc).isoformat(),
        "actors": [a.model_dump(mode="json") for a in directory.all()],
        "documents": [d.model_dump(mode="json") for d in docs],
        "revisions": [
            r.model_dump(mode="json") for d in docs for r in documents.revisions(d.document_id)
        ],
        "reviews": [r.model_dump(mode="json") for r in reviews.list()],
        "tasks": [t.model_dump(mode="json") for t in tasks.list()],
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(state, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)

    counts = {key: len(state[key]) for key in ("actors", "documents", "revisions", "reviews", "tasks")}
    logger.debug(f"Saved snapshot to {path}: {counts}")
    return counts


def load_snapshot(
    path: Path,
    *,
    directory: ActorDirectory,
    documents: DocumentStore,
    reviews: ReviewStore,
    tasks: TaskStore,
) -> Optional[Dict[str, int]]:
    """Populate the stores from ``path``.

    Returns ``None`` when the file does not exist.  A file that cannot
    be parsed is logged and re-raised.
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        state = json.loads(path.read_text(encoding="utf-8"))
        actors = [Actor.model_validate(a) for a in state.get("actors", [])]
        docs = [DocumentState.model_validate(d) for d in state.get("documents", [])]
        revisions = [Revision.model_validate(r) for r in state.get("revisions", [])]
        review_rows = [ReviewRecord.model_validate(r) for r in state.get("reviews", [])]
        task_rows = [TaskAssignment.model_validate(t) for t in state.get("tasks", [])]
    except Exception as e:
        logger.error(f"Failed to load workspace snapshot {path}: {e}")
        raise

    for actor in actors:
        directory.add(actor)
    for doc in docs:
        documents.put(doc)
    for revision in revisions:
        documents.add_revision(revision)
    for review in review_rows:
        reviews.put(review)
    for task in task_rows:
        tasks.put(task)

    counts = {
        "actors": len(actors),
        "documents": len(docs),
        "revisions": len(revisions),
        "reviews": len(review_rows),
        "tasks": len(task_rows),
    }
    logger.info(f"Restored workspace from {path}: {counts}")
    return counts
