"""Authorization rules for the workflow core.

All role and ownership checks live here so the lifecycle machine,
review pipeline and task tracker never compare role strings on their
own.  The functions are pure: no storage access, no side effects.
"""

from __future__ import annotations

from typing import Dict, Optional

from .core.models import Actor, ActorRole, DocumentState, ReviewStage

_STAGE_ROLES: Dict[ReviewStage, ActorRole] = {
    ReviewStage.SUPERVISOR_REVIEW: ActorRole.SUPERVISOR,
    ReviewStage.MANAGER_REVIEW: ActorRole.MANAGER,
}

_ASSIGNER_ROLES = frozenset({ActorRole.SUPERVISOR, ActorRole.MANAGER})
_ASSIGNEE_ROLES = frozenset({ActorRole.EMPLOYEE})


def stage_role(stage: ReviewStage) -> Optional[ActorRole]:
    """Role bound to a review stage; ``None`` for the automated stage."""
    return _STAGE_ROLES.get(stage)


def can_decide(role: ActorRole, stage: ReviewStage) -> bool:
    """True if an actor holding ``role`` may record a decision at ``stage``."""
    required = stage_role(stage)
    return required is not None and role == required


def can_edit(actor: Actor, document: DocumentState) -> bool:
    """True if ``actor`` may write content to ``document`` right now.

    Any known actor may edit a draft; nobody may edit a locked document,
    including the actor holding the lock.
    """
    return actor is not None and document.is_editable


def can_assign(assigner: Actor, assignee: Actor) -> bool:
    """Supervisors and managers delegate authorship work to employees."""
    return assigner.role in _ASSIGNER_ROLES and assignee.role in _ASSIGNEE_ROLES


def can_update_task(actor_id: str, assignee_id: str) -> bool:
    """Only the assignee moves a task forward."""
    return actor_id == assignee_id
