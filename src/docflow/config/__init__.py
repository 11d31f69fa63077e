"""Configuration for the document workflow core."""

from .settings import Settings, settings  # noqa: F401
