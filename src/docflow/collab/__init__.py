"""Collaborative workspace.

A workspace bundles the actors, the entity stores and the workflow
components so that documents, reviews and tasks share one identity
model and one consistency discipline.
"""

from .workspace import Workspace  # noqa: F401
