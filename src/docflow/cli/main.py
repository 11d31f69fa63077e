"""CLI application using Typer for the document workflow.

State is kept in a JSON snapshot between invocations; every command
loads it, runs one operation and writes it back.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..collab.workspace import Workspace
from ..config.settings import settings
from ..core.errors import WorkflowError
from ..core.models import (
    Actor,
    ActorRole,
    Decision,
    DocumentStatus,
    ResolutionStrategy,
    ReviewRecord,
    ReviewStage,
    SaveResult,
    TaskAssignment,
    TaskPriority,
    TaskStatus,
)
from ..utils.logging import get_logger
from ..web.app import start_server as _start_web_server

app = typer.Typer(
    name="docflow",
    help="Document collaboration workflow - drafts, reviews and task delegation",
    add_completion=False,
)
doc_app = typer.Typer(help="Create, edit and submit documents")
review_app = typer.Typer(help="Inspect and decide reviews")
task_app = typer.Typer(help="Assign and track authorship tasks")
app.add_typer(doc_app, name="doc")
app.add_typer(review_app, name="review")
app.add_typer(task_app, name="task")

console = Console()
logger = get_logger(__name__)

_state = {"workspace": None}

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]


@app.callback()
def main(
    workspace: Optional[Path] = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace snapshot file (default: DOCFLOW_DATA_DIR/workspace.json)",
    ),
) -> None:
    """Document collaboration workflow."""
    _state["workspace"] = workspace or settings.workspace_path


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _path() -> Path:
    return Path(_state["workspace"] or settings.workspace_path)


def _load() -> Workspace:
    path = _path()
    if not path.exists():
        console.print(f"[red]Error: no workspace at {path}; run 'docflow init' first[/red]")
        raise typer.Exit(1)
    return Workspace.from_settings(settings, path=path)


@contextmanager
def _session(persist: bool = True) -> Iterator[Workspace]:
    """Load the workspace, run one operation and save it back."""
    ws = _load()
    try:
        yield ws
    except WorkflowError as exc:
        console.print(f"[red]Error ({exc.kind.value}): {exc.message}[/red]")
        raise typer.Exit(1)
    if persist:
        ws.dump(_path())


def _read_content(content: Optional[str], file: Optional[Path]) -> str:
    if file is not None:
        if not file.exists():
            console.print(f"[red]Error: {file} not found[/red]")
            raise typer.Exit(1)
        return file.read_text(encoding="utf-8")
    if content is None:
        console.print("[red]Error: Must provide --content or --file[/red]")
        raise typer.Exit(1)
    return content


def _parse_actor(spec: str) -> Actor:
    parts = spec.split(":")
    if len(parts) not in (3, 4):
        raise typer.BadParameter(f"expected id:name:role[:department], got '{spec}'")
    actor_id, name, role = parts[:3]
    try:
        role_value = ActorRole(role.strip().lower())
    except ValueError:
        raise typer.BadParameter(f"unknown role '{role}' in '{spec}'")
    department = parts[3] if len(parts) == 4 else None
    return Actor(actor_id=actor_id.strip(), name=name.strip(), role=role_value, department=department)


def _print_save_result(result: SaveResult) -> None:
    if result.ok:
        console.print(f"[green]✓ Saved {result.document_id} as v{result.version}[/green]")
        return
    console.print(
        Panel(
            Text(result.current_content or ""),
            title=f"Conflict: {result.document_id} is now v{result.version} ({result.conflict.value})",
            border_style="yellow",
        )
    )
    console.print(
        "[yellow]Your save was not applied. Resolve with "
        "'docflow doc resolve' (local, remote or manual).[/yellow]"
    )
    raise typer.Exit(1)


def _review_table(title: str, reviews: List[ReviewRecord]) -> Table:
    table = Table(title=title)
    table.add_column("Review", style="cyan")
    table.add_column("Document", style="white")
    table.add_column("v", justify="right")
    table.add_column("Submitter", style="green")
    table.add_column("Stage", style="magenta")
    table.add_column("Status", style="yellow")
    table.add_column("Score", justify="right")
    for r in reviews:
        table.add_row(
            r.review_id,
            r.document_title,
            str(r.document_version),
            r.submitter_id,
            r.current_stage.value,
            r.final_status.value,
            str(r.auto_check.score),
        )
    return table


def _task_table(title: str, tasks: List[TaskAssignment], now: datetime) -> Table:
    table = Table(title=title)
    table.add_column("Task", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Assignee", style="green")
    table.add_column("Priority", style="magenta")
    table.add_column("Status", style="yellow")
    table.add_column("Progress", justify="right")
    table.add_column("Due")
    for t in tasks:
        due = t.due_date.date().isoformat() if t.due_date else "-"
        if t.is_overdue(now):
            due = f"[red]{due} (overdue)[/red]"
        table.add_row(
            t.task_id, t.title, t.assignee_name, t.priority.value, t.status.value, f"{t.progress}%", due
        )
    return table


# -----------------------------------------------------------------------------
# Workspace commands
# -----------------------------------------------------------------------------

@app.command()
def init(
    actor: List[str] = typer.Option(
        [], "--actor", help="Actor as id:name:role[:department]; role is manager, supervisor or employee"
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing workspace"),
) -> None:
    """Create an empty workspace snapshot seeded with actors."""
    path = _path()
    if path.exists() and not force:
        console.print(f"[red]Error: {path} already exists (use --force to overwrite)[/red]")
        raise typer.Exit(1)
    ws = Workspace(actors=[_parse_actor(spec) for spec in actor])
    counts = ws.dump(path)
    console.print(f"[green]✓ Workspace created at {path} with {counts['actors']} actors[/green]")


@app.command()
def actors() -> None:
    """List the actors of the workspace."""
    ws = _load()
    table = Table(title="Actors")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Role", style="magenta")
    table.add_column("Department", style="green")
    for a in ws.actors():
        table.add_row(a.actor_id, a.name, a.role.value, a.department or "-")
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Hostname to bind the web server to."),
    port: int = typer.Option(8000, "--port", help="Port for the web server."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Enable auto-reload (development only)."),
) -> None:
    """Start the JSON web API over the selected workspace."""
    path = _path()
    console.print(f"[bold blue]Starting web server[/bold blue] at http://{host}:{port} ({path})")
    try:
        _start_web_server(path, host=host, port=port, reload=reload)
    except Exception as exc:
        logger.error(f"Failed to start web server: {exc}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"docflow v{__version__}")


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------

@doc_app.command("create")
def doc_create(
    title: str = typer.Argument(..., help="Document title"),
    actor: str = typer.Option(..., "--as", "-a", help="Acting actor id"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Initial content"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read initial content from a file"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id"),
    folder: Optional[str] = typer.Option(None, "--folder", help="Folder id"),
) -> None:
    """Create a new draft document."""
    text = "" if content is None and file is None else _read_content(content, file)
    with _session() as ws:
        doc = ws.create_document(title, text, actor, project_id=project, folder_id=folder)
    console.print(f"[green]✓ Created {doc.document_id}[/green] '{doc.title}' (v{doc.version})")


@doc_app.command("list")
def doc_list(
    status: Optional[DocumentStatus] = typer.Option(None, "--status", help="Only documents in this status"),
) -> None:
    """List documents."""
    ws = _load()
    table = Table(title="Documents")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("v", justify="right")
    table.add_column("Status", style="yellow")
    table.add_column("Locked by", style="magenta")
    table.add_column("Words", justify="right")
    for d in ws.list_documents(status):
        table.add_row(d.document_id, d.title, str(d.version), d.status.value, d.locked_by or "-", str(d.word_count))
    console.print(table)


@doc_app.command("show")
def doc_show(document_id: str = typer.Argument(..., help="Document id")) -> None:
    """Show a document and its current content."""
    with _session(persist=False) as ws:
        doc = ws.get_document(document_id)
        active = ws.active_review(document_id)
    console.print(f"[bold]{doc.title}[/bold] ({doc.document_id})")
    console.print(f"Status: {doc.status.value}   Version: {doc.version}   Words: {doc.word_count}")
    if doc.locked_by:
        console.print(f"Locked by {doc.locked_by} since {doc.locked_at:%Y-%m-%d %H:%M}")
    if active:
        console.print(f"Review in flight: {active.review_id} at {active.current_stage.value}")
    console.print(Panel(Text(doc.content) if doc.content else Text("(empty)", style="dim"), title=f"v{doc.version}"))


@doc_app.command("save")
def doc_save(
    document_id: str = typer.Argument(..., help="Document id"),
    actor: str = typer.Option(..., "--as", "-a", help="Acting actor id"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="New content"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read new content from a file"),
    base: Optional[int] = typer.Option(None, "--base", help="Version your edit is based on (default: current)"),
    summary: Optional[str] = typer.Option(None, "--summary", "-m", help="Revision summary"),
) -> None:
    """Save new content for a draft."""
    text = _read_content(content, file)
    with _session() as ws:
        base_version = base if base is not None else ws.checkout(document_id, actor).base_version
        result = ws.save(document_id, base_version, text, actor, summary=summary)
    _print_save_result(result)


@doc_app.command("resolve")
def doc_resolve(
    document_id: str = typer.Argument(..., help="Document id"),
    strategy: ResolutionStrategy = typer.Option(..., "--strategy", "-s", help="local, remote or manual"),
    actor: str = typer.Option(..., "--as", "-a", help="Acting actor id"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Your or the merged content"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read content from a file"),
    expected: Optional[int] = typer.Option(None, "--expected", help="Version shown in the conflict"),
) -> None:
    """Resolve a conflicting save."""
    text = None
    if strategy != ResolutionStrategy.REMOTE:
        text = _read_content(content, file)
    with _session() as ws:
        outcome = ws.resolve(strategy, document_id, actor, content=text, expected_version=expected)
    if isinstance(outcome, SaveResult):
        _print_save_result(outcome)
    else:
        console.print(f"[green]✓ Rebased on v{outcome.base_version}; local edits discarded[/green]")


@doc_app.command("submit")
def doc_submit(
    document_id: str = typer.Argument(..., help="Document id"),
    actor: str = typer.Option(..., "--as", "-a", help="Submitting actor id"),
    comment: Optional[str] = typer.Option(None, "--comment", "-m", help="Note for the reviewers"),
    supervisor: Optional[str] = typer.Option(None, "--supervisor", help="Preferred supervisor id"),
) -> None:
    """Submit a draft for review."""
    with _session() as ws:
        review = ws.submit(document_id, actor, comment=comment, supervisor_id=supervisor)
    counts = review.auto_check.count_by_severity()
    console.print(f"[green]✓ Submitted as review {review.review_id}[/green]")
    console.print(
        f"Automated check: score {review.auto_check.score} "
        f"({counts['error']} errors, {counts['warning']} warnings, {counts['suggestion']} suggestions)"
    )


@doc_app.command("reedit")
def doc_reedit(
    document_id: str = typer.Argument(..., help="Document id"),
    actor: str = typer.Option(..., "--as", "-a", help="Acting actor id"),
) -> None:
    """Return a rejected document to draft."""
    with _session() as ws:
        doc = ws.re_edit(document_id, actor)
    console.print(f"[green]✓ {doc.document_id} is a draft again (v{doc.version})[/green]")


@doc_app.command("history")
def doc_history(document_id: str = typer.Argument(..., help="Document id")) -> None:
    """Show the revision history of a document."""
    with _session(persist=False) as ws:
        revisions = ws.history(document_id)
    table = Table(title=f"History of {document_id}")
    table.add_column("Version", style="cyan", justify="right")
    table.add_column("Author", style="green")
    table.add_column("When", style="white")
    table.add_column("Summary", style="yellow")
    for rev in revisions:
        table.add_row(str(rev.version), rev.author_id, f"{rev.created_at:%Y-%m-%d %H:%M:%S}", rev.summary or "")
    console.print(table)


@doc_app.command("restore")
def doc_restore(
    document_id: str = typer.Argument(..., help="Document id"),
    version: int = typer.Argument(..., help="Revision to restore"),
    actor: str = typer.Option(..., "--as", "-a", help="Acting actor id"),
) -> None:
    """Save an earlier revision as a new version."""
    with _session() as ws:
        current = ws.checkout(document_id, actor).base_version
        result = ws.restore(document_id, version, actor, current)
    _print_save_result(result)


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------

@review_app.command("list")
def review_list(
    reviewer: Optional[str] = typer.Option(None, "--reviewer", help="Reviews waiting on this reviewer"),
    submitter: Optional[str] = typer.Option(None, "--submitter", help="Reviews submitted by this actor"),
    document: Optional[str] = typer.Option(None, "--document", help="Reviews of this document"),
    completed: bool = typer.Option(False, "--completed", help="Only finished reviews"),
) -> None:
    """List reviews."""
    with _session(persist=False) as ws:
        if reviewer:
            reviews, title = ws.pending_reviews(reviewer), f"Pending for {reviewer}"
        elif submitter:
            reviews, title = ws.submitted_reviews(submitter), f"Submitted by {submitter}"
        elif document:
            reviews, title = ws.reviews_for_document(document), f"Reviews of {document}"
        elif completed:
            reviews, title = ws.completed_reviews(), "Completed reviews"
        else:
            reviews, title = ws.all_reviews(), "Reviews"
    console.print(_review_table(title, reviews))


@review_app.command("show")
def review_show(review_id: str = typer.Argument(..., help="Review id")) -> None:
    """Show a review with its check result and history."""
    with _session(persist=False) as ws:
        r = ws.get_review(review_id)
    console.print(f"[bold]{r.document_title}[/bold] v{r.document_version} ({r.review_id})")
    console.print(f"Submitted by {r.submitter_id} at {r.submitted_at:%Y-%m-%d %H:%M}")
    if r.submit_comment:
        console.print(f"Comment: {r.submit_comment}")
    console.print(f"Stage: {r.current_stage.value}   Status: {r.final_status.value}")

    check = Table(title=f"Automated check: score {r.auto_check.score}")
    check.add_column("Severity", style="magenta")
    check.add_column("Title", style="white")
    check.add_column("Location", style="cyan")
    for issue in r.auto_check.issues:
        check.add_row(issue.severity.value, issue.title, issue.location or "-")
    console.print(check)

    for label, slot in (("Supervisor", r.supervisor_decision), ("Manager", r.manager_decision)):
        if slot is None:
            continue
        who = slot.reviewer_id or "(unassigned)"
        line = f"{label}: {slot.decision.value} by {who}"
        if slot.comment:
            line += f" - {slot.comment}"
        console.print(line)

    history = Table(title="History")
    history.add_column("When", style="white")
    history.add_column("Event", style="cyan")
    history.add_column("Actor", style="green")
    history.add_column("Note", style="yellow")
    for event in r.history:
        history.add_row(f"{event.timestamp:%Y-%m-%d %H:%M:%S}", event.type.value, event.actor_name, event.note or "")
    console.print(history)


@review_app.command("decide")
def review_decide(
    review_id: str = typer.Argument(..., help="Review id"),
    decision: Decision = typer.Argument(..., help="approved or rejected"),
    actor: str = typer.Option(..., "--as", "-a", help="Reviewer id"),
    stage: Optional[ReviewStage] = typer.Option(None, "--stage", help="Stage being decided (default: current)"),
    comment: Optional[str] = typer.Option(None, "--comment", "-m", help="Reason or remarks"),
) -> None:
    """Approve or reject a review at its current stage."""
    with _session() as ws:
        target = stage or ws.get_review(review_id).current_stage
        r = ws.decide(review_id, target, actor, decision, comment)
    if r.is_terminal:
        console.print(f"[green]✓ Review {r.review_id} {r.final_status.value}[/green]")
    else:
        console.print(f"[green]✓ Recorded; review moved to {r.current_stage.value}[/green]")


@review_app.command("transfer")
def review_transfer(
    review_id: str = typer.Argument(..., help="Review id"),
    from_reviewer: str = typer.Option(..., "--from", help="Current reviewer id"),
    to_reviewer: str = typer.Option(..., "--to", help="New reviewer id"),
    comment: Optional[str] = typer.Option(None, "--comment", "-m", help="Reason for the transfer"),
) -> None:
    """Hand a pending review to another reviewer."""
    with _session() as ws:
        r = ws.transfer(review_id, from_reviewer, to_reviewer, comment)
    console.print(f"[green]✓ Review {r.review_id} transferred to {to_reviewer}[/green]")


# -----------------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------------

@task_app.command("assign")
def task_assign(
    document_id: str = typer.Argument(..., help="Document to write"),
    assigner: str = typer.Option(..., "--by", help="Assigning supervisor or manager id"),
    assignee: str = typer.Option(..., "--to", help="Assigned employee id"),
    priority: TaskPriority = typer.Option(TaskPriority.NORMAL, "--priority", "-p"),
    due: Optional[datetime] = typer.Option(None, "--due", formats=DATE_FORMATS, help="Due date (YYYY-MM-DD)"),
    title: Optional[str] = typer.Option(None, "--title", help="Task title"),
    description: Optional[str] = typer.Option(None, "--description", help="Task description"),
) -> None:
    """Assign authorship of a document."""
    with _session() as ws:
        task = ws.assign(
            document_id, assigner, assignee, priority=priority, due_date=due, title=title, description=description
        )
    console.print(f"[green]✓ Created task {task.task_id}[/green] for {task.assignee_name}")


@task_app.command("status")
def task_status(
    task_id: str = typer.Argument(..., help="Task id"),
    status: TaskStatus = typer.Argument(..., help="todo, in_progress, completed or blocked"),
    actor: str = typer.Option(..., "--as", "-a", help="Assignee id"),
    note: Optional[str] = typer.Option(None, "--note", "-m", help="Note (required when blocking)"),
) -> None:
    """Move a task to a new status."""
    with _session() as ws:
        task = ws.update_status(task_id, status, actor, note)
    console.print(f"[green]✓ {task.task_id} is {task.status.value} ({task.progress}%)[/green]")


@task_app.command("progress")
def task_progress(
    task_id: str = typer.Argument(..., help="Task id"),
    value: int = typer.Argument(..., help="Progress 0-100"),
    actor: str = typer.Option(..., "--as", "-a", help="Assignee id"),
    note: Optional[str] = typer.Option(None, "--note", "-m", help="Progress note"),
) -> None:
    """Report progress on a task."""
    with _session() as ws:
        task = ws.update_progress(task_id, value, actor, note)
    console.print(f"[green]✓ {task.task_id} at {task.progress}% ({task.status.value})[/green]")


@task_app.command("list")
def task_list(
    assignee: Optional[str] = typer.Option(None, "--assignee", help="Tasks of this assignee"),
    assigner: Optional[str] = typer.Option(None, "--assigner", help="Tasks created by this assigner"),
    document: Optional[str] = typer.Option(None, "--document", help="Tasks on this document"),
    overdue: bool = typer.Option(False, "--overdue", help="Only overdue tasks"),
) -> None:
    """List tasks."""
    with _session(persist=False) as ws:
        now = ws.clock()
        if assignee:
            tasks = ws.tasks_for_assignee(assignee)
        elif assigner:
            tasks = ws.tasks_by_assigner(assigner)
        elif document:
            tasks = ws.tasks_for_document(document)
        else:
            tasks = ws.all_tasks()
        if overdue:
            tasks = [t for t in tasks if t.is_overdue(now)]
    console.print(_task_table("Tasks", tasks, now))


@task_app.command("stats")
def task_stats(
    assigner: Optional[str] = typer.Option(None, "--assigner", help="Only tasks created by this assigner"),
) -> None:
    """Show task board counters."""
    with _session(persist=False) as ws:
        tasks = ws.tasks_by_assigner(assigner) if assigner else None
        stats = ws.task_stats(tasks)
    table = Table(title="Task Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="yellow", justify="right")
    for key in ("total", "todo", "in_progress", "completed", "blocked", "overdue"):
        table.add_row(key, str(stats[key]))
    console.print(table)

    if stats["by_assignee"]:
        per = Table(title="By Assignee")
        per.add_column("Assignee", style="green")
        per.add_column("Tasks", justify="right")
        per.add_column("Overdue", justify="right")
        for assignee_id, entry in sorted(stats["by_assignee"].items()):
            per.add_row(assignee_id, str(entry["total"]), str(entry["overdue"]))
        console.print(per)


if __name__ == "__main__":
    app()
