"""Integration tests for the docflow command line."""

import os

import pytest
import uvicorn
from typer.testing import CliRunner

from docflow.cli.main import app
from docflow.collab import Workspace

ACTORS = [
    "--actor", "alice:Alice:employee:Engineering",
    "--actor", "sam:Sam:supervisor",
    "--actor", "mia:Mia:manager",
]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def path(tmp_path, runner):
    """An initialized workspace snapshot."""
    snapshot = tmp_path / "workspace.json"
    result = runner.invoke(app, ["-w", str(snapshot), "init", *ACTORS])
    assert result.exit_code == 0, result.output
    return snapshot


def invoke(runner, path, *args):
    return runner.invoke(app, ["-w", str(path), *args])


def output(result) -> str:
    """Command output with rich line wrapping undone."""
    return " ".join(result.output.split())


def reload(path):
    ws = Workspace()
    ws.load(path)
    return ws


def test_init_refuses_overwrite(runner, path):
    """An existing workspace is only replaced with --force."""
    assert invoke(runner, path, "init").exit_code == 1
    assert invoke(runner, path, "init", "--force").exit_code == 0
    assert reload(path).actors() == []


def test_init_rejects_bad_actor(runner, tmp_path):
    """Actor specs must name a known role."""
    result = runner.invoke(app, ["-w", str(tmp_path / "ws.json"), "init", "--actor", "x:X:ceo"])
    assert result.exit_code != 0


def test_missing_workspace(runner, tmp_path):
    """Commands other than init need a workspace."""
    result = runner.invoke(app, ["-w", str(tmp_path / "none.json"), "doc", "list"])
    assert result.exit_code == 1
    assert "docflow init" in output(result)


def test_actors_and_version(runner, path):
    """Actors are listed and the version is printed."""
    result = invoke(runner, path, "actors")
    assert result.exit_code == 0
    assert "Alice" in output(result)
    assert "docflow v" in output(invoke(runner, path, "version"))


def test_document_review_flow(runner, path):
    """Create, edit, submit and approve a document from the shell."""
    assert invoke(runner, path, "doc", "create", "Plan", "--as", "alice", "-c", "first").exit_code == 0
    doc_id = reload(path).list_documents()[0].document_id

    saved = invoke(runner, path, "doc", "save", doc_id, "--as", "alice", "-c", "second", "-m", "edit")
    assert saved.exit_code == 0, saved.output
    assert reload(path).get_document(doc_id).version == 2

    stale = invoke(runner, path, "doc", "save", doc_id, "--as", "alice", "-c", "old", "--base", "1")
    assert stale.exit_code == 1
    assert "Conflict" in output(stale)
    assert reload(path).get_document(doc_id).content == "second"

    submitted = invoke(runner, path, "doc", "submit", doc_id, "--as", "alice", "-m", "ready")
    assert submitted.exit_code == 0, submitted.output
    assert "Automated check" in output(submitted)
    review_id = reload(path).active_review(doc_id).review_id

    locked = invoke(runner, path, "doc", "save", doc_id, "--as", "alice", "-c", "late")
    assert locked.exit_code == 1
    assert "Error (locked)" in output(locked)

    assert invoke(runner, path, "review", "decide", review_id, "approved", "--as", "sam").exit_code == 0
    final = invoke(runner, path, "review", "decide", review_id, "approved", "--as", "mia")
    assert final.exit_code == 0, final.output

    ws = reload(path)
    assert ws.get_review(review_id).final_status.value == "approved"
    assert ws.get_document(doc_id).status.value == "approved"
    assert invoke(runner, path, "review", "show", review_id).exit_code == 0
    assert invoke(runner, path, "doc", "history", doc_id).exit_code == 0


def test_rejection_needs_comment(runner, path):
    """Rejecting without -m fails and leaves the review pending."""
    invoke(runner, path, "doc", "create", "Plan", "--as", "alice", "-c", "text")
    doc_id = reload(path).list_documents()[0].document_id
    invoke(runner, path, "doc", "submit", doc_id, "--as", "alice")
    review_id = reload(path).active_review(doc_id).review_id

    result = invoke(runner, path, "review", "decide", review_id, "rejected", "--as", "sam")
    assert result.exit_code == 1
    assert "validation_failed" in output(result)
    assert reload(path).get_review(review_id).final_status.value == "pending"

    ok = invoke(runner, path, "review", "decide", review_id, "rejected", "--as", "sam", "-m", "too short")
    assert ok.exit_code == 0
    assert invoke(runner, path, "doc", "reedit", doc_id, "--as", "alice").exit_code == 0
    assert reload(path).get_document(doc_id).status.value == "draft"


def test_task_flow(runner, path):
    """Assign a task, report progress and show stats."""
    invoke(runner, path, "doc", "create", "Plan", "--as", "sam")
    doc_id = reload(path).list_documents()[0].document_id

    assigned = invoke(
        runner, path, "task", "assign", doc_id, "--by", "sam", "--to", "alice",
        "--priority", "urgent", "--due", "2030-01-31",
    )
    assert assigned.exit_code == 0, assigned.output
    task_id = reload(path).all_tasks()[0].task_id

    blocked = invoke(runner, path, "task", "status", task_id, "blocked", "--as", "alice")
    assert blocked.exit_code == 1

    assert invoke(runner, path, "task", "status", task_id, "in_progress", "--as", "alice").exit_code == 0
    assert invoke(runner, path, "task", "progress", task_id, "100", "--as", "alice").exit_code == 0

    task = reload(path).get_task(task_id)
    assert task.status.value == "completed"
    assert task.priority.value == "urgent"

    stats = invoke(runner, path, "task", "stats")
    assert stats.exit_code == 0
    assert "completed" in output(stats)
    assert invoke(runner, path, "task", "list", "--assignee", "alice").exit_code == 0


@pytest.fixture
def served(monkeypatch):
    """Calls that would have started uvicorn."""
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    return calls


def test_serve_uses_selected_workspace(runner, tmp_path, served):
    """The server reads and writes the snapshot named by --workspace."""
    custom = tmp_path / "custom.json"
    assert runner.invoke(app, ["-w", str(custom), "init", *ACTORS]).exit_code == 0

    result = invoke(runner, custom, "serve", "--port", "8123")
    assert result.exit_code == 0, result.output

    assert len(served) == 1
    served_app, kwargs = served[0]
    assert served_app.state.snapshot_path == custom.resolve()
    assert kwargs == {"host": "127.0.0.1", "port": 8123}


def test_serve_with_reload_exports_workspace(runner, path, served, monkeypatch):
    """The reloader child finds the workspace through the environment."""
    monkeypatch.setenv("DOCFLOW_DATA_DIR", os.environ["DOCFLOW_DATA_DIR"])
    monkeypatch.setenv("DOCFLOW_WORKSPACE_FILE", "workspace.json")

    result = invoke(runner, path, "serve", "--reload")
    assert result.exit_code == 0, result.output

    assert len(served) == 1
    target, kwargs = served[0]
    assert target == "docflow.web.app:app"
    assert kwargs["reload"] is True
    assert os.environ["DOCFLOW_DATA_DIR"] == str(path.resolve().parent)
    assert os.environ["DOCFLOW_WORKSPACE_FILE"] == path.name
