"""Shared fixtures for the docflow test suite."""

import os
import tempfile

# Keep settings side effects (data_dir creation) out of the working tree.
os.environ.setdefault("DOCFLOW_DATA_DIR", tempfile.mkdtemp(prefix="docflow-tests-"))
os.environ.setdefault("DOCFLOW_LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from docflow.collab import Workspace  # noqa: E402
from docflow.core import Actor, ActorRole, ManualClock  # noqa: E402

EMPLOYEE = "alice"
OTHER_EMPLOYEE = "bob"
SUPERVISOR = "sam"
OTHER_SUPERVISOR = "sue"
MANAGER = "mia"


@pytest.fixture
def actors():
    """One manager, two supervisors and two employees."""
    return [
        Actor(actor_id=EMPLOYEE, name="Alice", role=ActorRole.EMPLOYEE, department="Engineering"),
        Actor(actor_id=OTHER_EMPLOYEE, name="Bob", role=ActorRole.EMPLOYEE),
        Actor(actor_id=SUPERVISOR, name="Sam", role=ActorRole.SUPERVISOR),
        Actor(actor_id=OTHER_SUPERVISOR, name="Sue", role=ActorRole.SUPERVISOR),
        Actor(actor_id=MANAGER, name="Mia", role=ActorRole.MANAGER),
    ]


@pytest.fixture
def clock():
    """Deterministic clock starting at 2024-01-01T00:00:00Z."""
    return ManualClock()


@pytest.fixture
def workspace(actors, clock):
    """In-memory workspace with the standard actors."""
    return Workspace(actors=actors, clock=clock)


@pytest.fixture
def draft(workspace):
    """A draft document written by the employee."""
    return workspace.create_document("Design Doc", "initial content", EMPLOYEE)


@pytest.fixture
def review(workspace, draft):
    """The draft, submitted for review by its author."""
    return workspace.submit(draft.document_id, EMPLOYEE, comment="please review")
