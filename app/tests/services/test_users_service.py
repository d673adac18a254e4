import pytest

from app.core.errors import Forbidden, InvalidArgument
from app.models.enums import GlobalRole
from app.services.users_service import UsersService


def test_ensure_user_is_idempotent(db):
    svc = UsersService()
    a = svc.ensure_user(db, email="Owner@Example.org", full_name="Owner", global_role=GlobalRole.OWNER)
    b = svc.ensure_user(db, email="owner@example.org", full_name="Someone else")
    assert a.id == b.id
    assert b.global_role == "Owner"


def test_only_owner_changes_global_roles(db, make_user, as_actor):
    owner, sup, target = make_user(GlobalRole.OWNER), make_user(GlobalRole.SUPERVISOR), make_user()
    svc = UsersService()

    with pytest.raises(Forbidden):
        svc.set_global_role(db, actor=as_actor(sup), user_id=target.id, global_role="Mentor")

    u, audit = svc.set_global_role(db, actor=as_actor(owner), user_id=target.id, global_role="Mentor")
    assert u.global_role == "Mentor"
    assert audit.entry.entity_type == "User"
    assert [(v.field_path, v.old_value, v.new_value) for v in audit.versions] == [
        ("globalRole", "Collaborator", "Mentor")
    ]

    with pytest.raises(InvalidArgument):
        svc.set_global_role(db, actor=as_actor(owner), user_id=target.id, global_role="Janitor")
