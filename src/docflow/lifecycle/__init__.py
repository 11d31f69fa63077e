"""Document lifecycle: drafts, submission, review outcomes and versions."""

from .machine import DocumentLifecycle  # noqa: F401
