"""FastAPI web application for the document workflow.

This module builds the FastAPI application around a workspace and
provides a convenience function to launch the server via Uvicorn.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .. import __version__
from ..collab.workspace import Workspace
from ..config.settings import settings
from ..core.errors import WorkflowError
from .routes import router, workflow_error_handler


def create_app(workspace: Optional[Workspace] = None, snapshot_path: Optional[Path] = None) -> FastAPI:
    """Build the API around ``workspace``.

    Without an injected workspace one is loaded from
    ``settings.workspace_path`` on the first request and every change
    is written back to that snapshot.  An injected workspace is only
    persisted when ``snapshot_path`` is given.
    """
    api = FastAPI(
        title=settings.api_title,
        description="Drafts, multi-stage reviews and task delegation over JSON",
        version=__version__,
    )
    api.state.workspace = workspace
    if workspace is None and snapshot_path is None:
        snapshot_path = settings.workspace_path
    api.state.snapshot_path = snapshot_path

    api.add_exception_handler(WorkflowError, workflow_error_handler)
    api.include_router(router)

    @api.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    return api


app = create_app()


def start_server(
    snapshot_path: Optional[Path] = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
) -> None:
    """Serve the workspace stored at ``snapshot_path`` with Uvicorn.

    The reloader re-imports this module in a child process, so with
    ``reload`` the path travels through the ``DOCFLOW_`` environment
    and the module-level :data:`app` picks it up from settings.
    """
    path = Path(snapshot_path or settings.workspace_path).resolve()
    if reload:
        os.environ["DOCFLOW_DATA_DIR"] = str(path.parent)
        os.environ["DOCFLOW_WORKSPACE_FILE"] = path.name
        uvicorn.run("docflow.web.app:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(create_app(snapshot_path=path), host=host, port=port)


if __name__ == "__main__":
    start_server()
