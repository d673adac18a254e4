import uuid

import pytest

from app.core.errors import Forbidden, InvalidArgument, NotFound
from app.models.enums import GlobalRole
from app.models.field_version import FieldVersion
from app.models.membership import ProjectMembership
from app.services.projects_service import ProjectsService


def test_create_sets_owner_and_audits(db, make_user, as_actor):
    owner = make_user()
    p, audit = ProjectsService().create(db, actor=as_actor(owner), title="  Kelp forests  ", tags=["ocean"])

    assert p.owner_id == owner.id
    assert p.title == "Kelp forests"
    assert p.visibility == "private"
    assert audit.entry.action == "create"
    assert audit.entry.entity_id == p.id


def test_create_validates(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    with pytest.raises(InvalidArgument):
        svc.create(db, actor=as_actor(owner), title="   ")
    with pytest.raises(InvalidArgument):
        svc.create(db, actor=as_actor(owner), title="x", visibility="public")


def test_update_records_only_changed_fields(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    p, _ = svc.create(db, actor=as_actor(owner), title="Peatlands", status="draft")

    p, audit = svc.update(
        db,
        actor=as_actor(owner),
        project_id=p.id,
        changes={"status": "published", "title": "Peatlands"},
    )
    assert p.status == "published"
    assert [(v.field_path, v.old_value, v.new_value) for v in audit.versions] == [
        ("status", "draft", "published")
    ]


def test_update_strips_title(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    p, _ = svc.create(db, actor=as_actor(owner), title="Peatlands")

    p, audit = svc.update(db, actor=as_actor(owner), project_id=p.id, changes={"title": "  Peat bogs  "})
    assert p.title == "Peat bogs"
    assert [(v.field_path, v.new_value) for v in audit.versions] == [("title", "Peat bogs")]

    # surrounding whitespace alone is not a change
    _, audit = svc.update(db, actor=as_actor(owner), project_id=p.id, changes={"title": "Peat bogs "})
    assert audit.versions == []


def test_update_rejects_read_only_fields(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    p, _ = svc.create(db, actor=as_actor(owner), title="Peatlands")
    with pytest.raises(InvalidArgument):
        svc.update(db, actor=as_actor(owner), project_id=p.id, changes={"owner_id": str(uuid.uuid4())})


def test_viewer_cannot_update(db, make_user, as_actor):
    owner, viewer = make_user(), make_user()
    svc = ProjectsService()
    p, _ = svc.create(db, actor=as_actor(owner), title="Peatlands")
    db.add(ProjectMembership(project_id=p.id, user_id=viewer.id, role="Viewer", invited_by=owner.id))
    db.commit()

    assert svc.get(db, actor=as_actor(viewer), project_id=p.id).id == p.id
    with pytest.raises(Forbidden):
        svc.update(db, actor=as_actor(viewer), project_id=p.id, changes={"status": "x"})


def test_archive_is_idempotent_and_versioned(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    p, _ = svc.create(db, actor=as_actor(owner), title="Peatlands")

    p, first = svc.archive(db, actor=as_actor(owner), project_id=p.id)
    archived_at = p.archived_at
    assert archived_at is not None
    assert [v.field_path for v in first.versions] == ["archivedAt"]
    assert set(first.versions[0].new_value) == {"$date"}

    p, second = svc.archive(db, actor=as_actor(owner), project_id=p.id)
    assert p.archived_at == archived_at
    assert second.versions == []
    assert second.entry is not None
    assert db.query(FieldVersion).count() == 1


def test_listing_hides_archived_by_default(db, make_user, as_actor):
    owner = make_user()
    svc = ProjectsService()
    keep, _ = svc.create(db, actor=as_actor(owner), title="Keep")
    gone, _ = svc.create(db, actor=as_actor(owner), title="Gone")
    svc.archive(db, actor=as_actor(owner), project_id=gone.id)

    assert [p.id for p in svc.list(db, actor=as_actor(owner))] == [keep.id]
    assert [p.id for p in svc.list(db, actor=as_actor(owner), archived_only=True)] == [gone.id]


def test_missing_project_for_elevated_is_not_found(db, make_user, as_actor):
    sup = make_user(GlobalRole.SUPERVISOR)
    with pytest.raises(NotFound):
        ProjectsService().get(db, actor=as_actor(sup), project_id=uuid.uuid4())
