"""Web package for the document workflow.

This package contains the FastAPI application exposing the workflow
operations as a JSON API.

To start the web server from the CLI use:
    docflow serve --port 8000 --reload
"""
