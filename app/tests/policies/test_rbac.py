import uuid

import pytest

from app.core.errors import Forbidden
from app.models.enums import GlobalRole
from app.policies.rbac import (
    NO_ACCESS,
    AccessFacts,
    Actor,
    can_manage_members,
    evaluate_access,
    is_elevated,
    matching_rule,
    needs_membership_lookup,
    require_edit,
    require_view,
)


def actor(role=GlobalRole.COLLABORATOR):
    return Actor(actor_id=uuid.uuid4(), global_role=role)


def project_facts(**kw):
    base = dict(project_exists=True, owner_id=uuid.uuid4(), visibility="private")
    base.update(kw)
    return AccessFacts(**base)


@pytest.mark.parametrize("role", [GlobalRole.OWNER, GlobalRole.SUPERVISOR, GlobalRole.MENTOR])
def test_elevated_roles_get_full_access(role):
    d = evaluate_access(actor(role), AccessFacts(project_exists=True))
    assert d.can_view and d.can_edit
    assert d.role == role.value


@pytest.mark.parametrize("role", [GlobalRole.COLLABORATOR, GlobalRole.VIEWER])
def test_non_elevated_roles(role):
    assert is_elevated(role) is False
    assert is_elevated(role.value) is False


def test_is_elevated_accepts_strings_and_none():
    assert is_elevated("Owner") is True
    assert is_elevated(None) is False
    assert is_elevated("Janitor") is False


def test_owner_gets_owner_role():
    a = actor()
    d = evaluate_access(a, project_facts(owner_id=a.actor_id))
    assert (d.can_view, d.can_edit, d.role) == (True, True, "Owner")
    assert matching_rule(a, project_facts(owner_id=a.actor_id)) == "project_owner"


def test_collaborator_membership_can_edit():
    d = evaluate_access(actor(), project_facts(membership_role="Collaborator"))
    assert (d.can_view, d.can_edit, d.role) == (True, True, "Collaborator")


def test_viewer_membership_read_only():
    d = evaluate_access(actor(), project_facts(membership_role="Viewer"))
    assert (d.can_view, d.can_edit, d.role) == (True, False, "Viewer")


def test_shared_project_needs_discovery():
    a = actor()
    facts = project_facts(visibility="shared", discoverable=True)
    d = evaluate_access(a, facts)
    assert (d.can_view, d.can_edit, d.role) == (True, False, None)

    assert evaluate_access(a, project_facts(visibility="shared", discoverable=False)) == NO_ACCESS


def test_private_project_without_relation_is_denied():
    assert evaluate_access(actor(), project_facts()) == NO_ACCESS


def test_missing_project_is_denied_for_non_elevated():
    assert evaluate_access(actor(), AccessFacts(project_exists=False)) == NO_ACCESS


def test_membership_beats_shared_visibility():
    # Collaborator membership on a shared project must still allow edit
    d = evaluate_access(actor(), project_facts(visibility="shared", membership_role="Collaborator", discoverable=True))
    assert d.can_edit is True
    assert d.role == "Collaborator"


def test_membership_lookup_skipped_for_owner():
    a = actor()
    assert needs_membership_lookup(a, project_facts(owner_id=a.actor_id)) is False
    assert needs_membership_lookup(a, project_facts()) is True


def test_can_manage_members():
    a = actor()

    class P:
        owner_id = a.actor_id

    class Other:
        owner_id = uuid.uuid4()

    assert can_manage_members(a, P()) is True
    assert can_manage_members(a, Other()) is False
    assert can_manage_members(actor(GlobalRole.SUPERVISOR), Other()) is True
    assert can_manage_members(a, None) is False


def test_require_helpers_raise_forbidden():
    with pytest.raises(Forbidden):
        require_view(NO_ACCESS)
    viewer = evaluate_access(actor(), project_facts(membership_role="Viewer"))
    require_view(viewer)
    with pytest.raises(Forbidden):
        require_edit(viewer)
