import uuid

import pytest

from app.core.clock import utc_now
from app.core.errors import Forbidden, InvalidIdentifier
from app.models.enums import GlobalRole
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.services.access_service import (
    DISCOVERY_POLICIES,
    AccessService,
    has_any_project_relation,
    resolve_access,
)


def create_project(db, owner, *, visibility="private", archived=False):
    p = Project(
        owner_id=owner.id,
        title="Soil microbiome survey",
        status="draft",
        tags=[],
        visibility=visibility,
    )
    if archived:
        p.archived_at = utc_now()
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def add_membership(db, project, user, role):
    m = ProjectMembership(project_id=project.id, user_id=user.id, role=role, invited_by=project.owner_id)
    db.add(m)
    db.commit()
    return m


def test_owner_resolves_to_full_access(db, make_user, as_actor):
    owner = make_user()
    p = create_project(db, owner)

    d = resolve_access(db, as_actor(owner), p.id)
    assert (d.can_view, d.can_edit, d.role) == (True, True, "Owner")


def test_malformed_project_id_fails_before_lookup(db, make_user, as_actor):
    u = make_user()
    with pytest.raises(InvalidIdentifier):
        resolve_access(db, as_actor(u), "not-a-uuid")


def test_supervisor_sees_everything_including_missing(db, make_user, as_actor):
    sup = make_user(GlobalRole.SUPERVISOR)
    d = resolve_access(db, as_actor(sup), uuid.uuid4())
    assert d.can_view and d.can_edit
    assert d.role == "Supervisor"


def test_unknown_project_denied(db, make_user, as_actor):
    u = make_user()
    d = resolve_access(db, as_actor(u), uuid.uuid4())
    assert (d.can_view, d.can_edit, d.role) == (False, False, None)


def test_collaborator_and_viewer_memberships(db, make_user, as_actor):
    owner, collab, viewer = make_user(), make_user(), make_user()
    p = create_project(db, owner)
    add_membership(db, p, collab, "Collaborator")
    add_membership(db, p, viewer, "Viewer")

    svc = AccessService()
    assert svc.resolve_access(db, as_actor(collab), p.id).can_edit is True

    v = svc.resolve_access(db, as_actor(viewer), p.id)
    assert (v.can_view, v.can_edit, v.role) == (True, False, "Viewer")
    with pytest.raises(Forbidden):
        svc.require_edit(db, as_actor(viewer), p.id)


def test_shared_visibility_uses_discovery_predicate(db, make_user, as_actor):
    owner, outsider, newcomer = make_user(), make_user(), make_user()
    shared = create_project(db, owner, visibility="shared")
    # outsider owns something else, so counts as having a relation
    create_project(db, outsider)

    svc = AccessService()
    d = svc.resolve_access(db, as_actor(outsider), shared.id)
    assert (d.can_view, d.can_edit) == (True, False)

    # no ownership, no membership anywhere
    assert svc.resolve_access(db, as_actor(newcomer), shared.id).can_view is False
    assert has_any_project_relation(db, as_actor(newcomer)) is False


def test_discovery_policy_is_pluggable(db, make_user, as_actor):
    owner, newcomer = make_user(), make_user()
    shared = create_project(db, owner, visibility="shared")

    open_svc = AccessService(discovery=DISCOVERY_POLICIES["authenticated"])
    closed_svc = AccessService(discovery=DISCOVERY_POLICIES["disabled"])
    assert open_svc.resolve_access(db, as_actor(newcomer), shared.id).can_view is True
    assert closed_svc.resolve_access(db, as_actor(newcomer), shared.id).can_view is False


def test_discovery_not_consulted_for_private_projects(db, make_user, as_actor):
    owner, u = make_user(), make_user()
    p = create_project(db, owner)
    calls = []

    def spy(db_, actor_):
        calls.append(actor_)
        return True

    assert AccessService(discovery=spy).resolve_access(db, as_actor(u), p.id).can_view is False
    assert calls == []


def test_archival_does_not_change_access(db, make_user, as_actor):
    owner, collab = make_user(), make_user()
    p = create_project(db, owner, archived=True)
    add_membership(db, p, collab, "Collaborator")

    d = resolve_access(db, as_actor(collab), p.id)
    assert d.can_edit is True


def test_listing_filters_by_access_and_archive(db, make_user, as_actor):
    owner, viewer, sup = make_user(), make_user(), make_user(GlobalRole.SUPERVISOR)
    live = create_project(db, owner)
    archived = create_project(db, owner, archived=True)
    add_membership(db, live, viewer, "Viewer")
    add_membership(db, archived, viewer, "Viewer")
    create_project(db, sup)  # not visible to viewer

    svc = AccessService()
    ids = {p.id for p in svc.list_visible_projects(db, as_actor(viewer))}
    assert ids == {live.id}

    ids = {p.id for p in svc.list_visible_projects(db, as_actor(viewer), include_archived=True)}
    assert ids == {live.id, archived.id}

    ids = {p.id for p in svc.list_visible_projects(db, as_actor(viewer), archived_only=True)}
    assert ids == {archived.id}

    assert len(svc.list_visible_projects(db, as_actor(sup), include_archived=True)) == 3
