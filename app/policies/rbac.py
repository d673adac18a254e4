#app/policies/rbac.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from app.core.errors import Forbidden
from app.models.enums import GlobalRole, MembershipRole, ProjectVisibility


@dataclass(frozen=True)
class Actor:
    actor_id: uuid.UUID
    global_role: GlobalRole


@dataclass(frozen=True)
class AccessDecision:
    can_view: bool
    can_edit: bool
    role: Optional[str]


NO_ACCESS = AccessDecision(can_view=False, can_edit=False, role=None)


@dataclass(frozen=True)
class AccessFacts:
    """
    Everything the decision table needs about one (actor, project) pair.
    Gathered by access_service; the table itself never touches storage.
    """
    project_exists: bool
    owner_id: Optional[uuid.UUID] = None
    visibility: Optional[str] = None
    membership_role: Optional[str] = None
    # result of the shared-discovery predicate; None = not evaluated
    discoverable: Optional[bool] = None


ELEVATED_ROLES = frozenset({GlobalRole.OWNER, GlobalRole.SUPERVISOR, GlobalRole.MENTOR})


def is_elevated(global_role: Union[GlobalRole, str, None]) -> bool:
    """
    Owner / Supervisor / Mentor see and edit every project.
    """
    if global_role is None:
        return False
    try:
        return GlobalRole(global_role) in ELEVATED_ROLES
    except ValueError:
        return False


# --- Decision table ---
# Ordered (name, matcher, decision-builder). First match wins.

Rule = Tuple[
    str,
    Callable[[Actor, AccessFacts], bool],
    Callable[[Actor, AccessFacts], AccessDecision],
]


def _is_owner(actor: Actor, facts: AccessFacts) -> bool:
    return facts.project_exists and facts.owner_id is not None and facts.owner_id == actor.actor_id


def _is_shared_and_discoverable(actor: Actor, facts: AccessFacts) -> bool:
    return (
        facts.project_exists
        and facts.visibility == ProjectVisibility.shared.value
        and bool(facts.discoverable)
    )


ACCESS_RULES: Tuple[Rule, ...] = (
    (
        "elevated_global_role",
        lambda a, f: is_elevated(a.global_role),
        lambda a, f: AccessDecision(True, True, GlobalRole(a.global_role).value),
    ),
    (
        "project_owner",
        _is_owner,
        lambda a, f: AccessDecision(True, True, GlobalRole.OWNER.value),
    ),
    (
        "collaborator_membership",
        lambda a, f: f.project_exists and f.membership_role == MembershipRole.COLLABORATOR.value,
        lambda a, f: AccessDecision(True, True, MembershipRole.COLLABORATOR.value),
    ),
    (
        "viewer_membership",
        lambda a, f: f.project_exists and f.membership_role == MembershipRole.VIEWER.value,
        lambda a, f: AccessDecision(True, False, MembershipRole.VIEWER.value),
    ),
    (
        "shared_discovery",
        _is_shared_and_discoverable,
        lambda a, f: AccessDecision(True, False, None),
    ),
)


def evaluate_access(actor: Actor, facts: AccessFacts) -> AccessDecision:
    """
    Pure RBAC: deterministic decision for one actor on one project.
    """
    for _name, matches, decide in ACCESS_RULES:
        if matches(actor, facts):
            return decide(actor, facts)
    return NO_ACCESS


def matching_rule(actor: Actor, facts: AccessFacts) -> Optional[str]:
    for name, matches, _decide in ACCESS_RULES:
        if matches(actor, facts):
            return name
    return None


def needs_membership_lookup(actor: Actor, facts: AccessFacts) -> bool:
    # rules 1 and 2 decide without a membership read
    return not is_elevated(actor.global_role) and not _is_owner(actor, facts)


def can_manage_members(actor: Actor, project: Optional[object]) -> bool:
    """
    Elevated actors and the project owner may add, change and remove members.
    `project` is anything with an owner_id (ORM row or snapshot).
    """
    if is_elevated(actor.global_role):
        return True
    owner_id = getattr(project, "owner_id", None)
    return owner_id is not None and owner_id == actor.actor_id


def require_view(decision: AccessDecision) -> None:
    if not decision.can_view:
        raise Forbidden("Not permitted to view this project.")


def require_edit(decision: AccessDecision) -> None:
    if not decision.can_edit:
        raise Forbidden("Not permitted to modify this project.")
