"""Document collaboration workflow core.

Drafts move through a locked, two-stage review; concurrent edits are
detected by version number and resolved by the user; authorship work
is delegated as tasks with an append-only timeline.
"""

__version__ = "0.1.0"
