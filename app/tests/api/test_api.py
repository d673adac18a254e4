import uuid

import pytest

from app.core.deps import get_registry_sync_service
from app.core.security import create_access_token
from app.models.enums import GlobalRole
from app.services.registry_client import InstitutionRecord, InstitutionType, RegistrySource
from app.services.registry_sync_service import RegistrySyncService

API = "/api/v1"


class FakeClient:
    def iter_records(self, source):
        yield InstitutionRecord(external_id="1", name="Київський університет", registry_code="02070944")
        yield InstitutionRecord(external_id="2", name="Одеська політехніка")


@pytest.fixture
def registry_override(client):
    from app.main import app

    source = RegistrySource(key="edbo-universities", base_url="https://registry.test/", institution_types=[InstitutionType("1", "ЗВО")])
    app.dependency_overrides[get_registry_sync_service] = lambda: RegistrySyncService(
        client=FakeClient(), sources={source.key: source}
    )
    return client


def create_project(client, headers, **body):
    payload = {"title": "Wetland carbon"}
    payload.update(body)
    r = client.post(f"{API}/projects", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_health_carries_request_id(client):
    r = client.get(f"{API}/health", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.json()["request_id"] == "abc-123"
    assert r.headers["X-Request-Id"] == "abc-123"


def test_missing_or_bad_token_is_unauthorized(client):
    r = client.get(f"{API}/projects")
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"

    r = client.get(f"{API}/projects", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401

    bad_sub = create_access_token("not-a-uuid", {"global_role": "Owner"})
    r = client.get(f"{API}/projects", headers={"Authorization": f"Bearer {bad_sub}"})
    assert r.status_code == 401


def test_project_lifecycle_and_audit_trail(client, make_user, auth_headers):
    owner = make_user()
    h = auth_headers(owner)

    p = create_project(client, h, status="draft")
    pid = p["projectId"]
    assert p["ownerId"] == str(owner.id)

    r = client.patch(f"{API}/projects/{pid}", json={"status": "published"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "published"
    assert "X-Audit-Warning" not in r.headers

    r = client.get(f"{API}/projects/{pid}/audit", headers=h)
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [e["action"] for e in entries] == ["update", "create"]
    assert entries[0]["changes"] == [
        {"fieldPath": "status", "oldValue": "draft", "oldValuePresent": True, "newValue": "published"}
    ]
    assert entries[0]["metadata"]["requestId"]

    r = client.get(f"{API}/projects/{pid}/versions/Project/{pid}", headers=h)
    assert r.status_code == 200
    assert [v["fieldPath"] for v in r.json()["versions"]] == ["status"]

    r = client.get(f"{API}/projects/{pid}/versions/Project/{uuid.uuid4()}", headers=h)
    assert r.status_code == 404


def test_malformed_id_is_bad_request(client, make_user, auth_headers):
    r = client.get(f"{API}/projects/not-a-uuid", headers=auth_headers(make_user()))
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_identifier"


def test_access_endpoint_and_forbidden(client, make_user, auth_headers):
    owner, stranger = make_user(), make_user()
    pid = create_project(client, auth_headers(owner))["projectId"]

    r = client.get(f"{API}/projects/{pid}/access", headers=auth_headers(owner))
    assert r.json() == {"projectId": pid, "canView": True, "canEdit": True, "role": "Owner"}

    r = client.get(f"{API}/projects/{pid}", headers=auth_headers(stranger))
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"


def test_members_flow(client, make_user, auth_headers):
    owner, viewer = make_user(), make_user()
    h = auth_headers(owner)
    pid = create_project(client, h)["projectId"]

    r = client.post(f"{API}/projects/{pid}/members", json={"userId": str(viewer.id), "role": "Viewer"}, headers=h)
    assert r.status_code == 201

    r = client.post(f"{API}/projects/{pid}/members", json={"userId": str(viewer.id), "role": "Collaborator"}, headers=h)
    assert r.status_code == 409

    vh = auth_headers(viewer)
    assert client.get(f"{API}/projects/{pid}", headers=vh).status_code == 200
    assert client.patch(f"{API}/projects/{pid}", json={"title": "x"}, headers=vh).status_code == 403
    assert client.post(f"{API}/projects/{pid}/members", json={"userId": str(uuid.uuid4()), "role": "Viewer"}, headers=vh).status_code == 403

    r = client.patch(f"{API}/projects/{pid}/members/{viewer.id}", json={"role": "Collaborator"}, headers=h)
    assert r.status_code == 200
    assert r.json()["role"] == "Collaborator"
    assert client.patch(f"{API}/projects/{pid}", json={"title": "Renamed"}, headers=vh).status_code == 200

    members = client.get(f"{API}/projects/{pid}/members", headers=h).json()["members"]
    assert [m["userId"] for m in members] == [str(viewer.id)]
    membership_id = members[0]["membershipId"]

    r = client.get(f"{API}/projects/{pid}/versions/Membership/{membership_id}", headers=h)
    assert [(v["fieldPath"], v["oldValue"], v["newValue"]) for v in r.json()["versions"]] == [
        ("role", "Viewer", "Collaborator")
    ]

    r = client.delete(f"{API}/projects/{pid}/members/{viewer.id}", headers=h)
    assert r.status_code == 204
    assert client.get(f"{API}/projects/{pid}", headers=vh).status_code == 403


def test_archive_and_listing(client, make_user, auth_headers):
    owner = make_user()
    h = auth_headers(owner)
    keep = create_project(client, h, title="Keep")["projectId"]
    gone = create_project(client, h, title="Gone")["projectId"]

    r = client.post(f"{API}/projects/{gone}/archive", headers=h)
    assert r.status_code == 200
    assert r.json()["archivedAtIso"]

    ids = [p["projectId"] for p in client.get(f"{API}/projects", headers=h).json()["projects"]]
    assert ids == [keep]
    ids = [p["projectId"] for p in client.get(f"{API}/projects?archived=true", headers=h).json()["projects"]]
    assert ids == [gone]
    ids = {p["projectId"] for p in client.get(f"{API}/projects?includeArchived=true", headers=h).json()["projects"]}
    assert ids == {keep, gone}


def test_audit_search_requires_elevated(client, make_user, auth_headers):
    owner, sup = make_user(), make_user(GlobalRole.SUPERVISOR)
    create_project(client, auth_headers(owner))

    assert client.get(f"{API}/audit", headers=auth_headers(owner)).status_code == 403

    r = client.get(f"{API}/audit?action=create&limit=500", headers=auth_headers(sup))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["limit"] == 100

    r = client.get(f"{API}/audit", params={"q": owner.email}, headers=auth_headers(sup))
    assert r.json()["total"] == 1
    r = client.get(f"{API}/audit", params={"q": "no-such-actor"}, headers=auth_headers(sup))
    assert r.json()["total"] == 0

    r = client.get(f"{API}/audit/summary?actorId={owner.id}", headers=auth_headers(sup))
    assert r.status_code == 200
    assert r.json()["actions"] == [{"action": "create", "count": 1}]


def test_global_role_change_is_owner_only(client, make_user, auth_headers):
    owner, sup, target = make_user(GlobalRole.OWNER), make_user(GlobalRole.SUPERVISOR), make_user()

    r = client.patch(f"{API}/users/{target.id}/role", json={"globalRole": "Mentor"}, headers=auth_headers(sup))
    assert r.status_code == 403

    r = client.patch(f"{API}/users/{target.id}/role", json={"globalRole": "Mentor"}, headers=auth_headers(owner))
    assert r.status_code == 200
    assert r.json()["globalRole"] == "Mentor"

    r = client.patch(f"{API}/users/{target.id}/role", json={"globalRole": "Janitor"}, headers=auth_headers(owner))
    assert r.status_code == 422


def test_registry_endpoints(registry_override, make_user, auth_headers):
    client = registry_override
    sup, user = make_user(GlobalRole.SUPERVISOR), make_user()
    key = "edbo-universities"

    assert client.get(f"{API}/registry/{key}", headers=auth_headers(user)).status_code == 403

    info = client.get(f"{API}/registry/{key}", headers=auth_headers(sup)).json()
    assert info["dueForSync"] is True
    assert info["count"] == 0

    r = client.patch(f"{API}/registry/{key}", json={"intervalDays": 3}, headers=auth_headers(sup))
    assert r.status_code == 400
    r = client.patch(f"{API}/registry/{key}", json={"intervalDays": 1}, headers=auth_headers(sup))
    assert r.json()["intervalDays"] == 1

    r = client.post(f"{API}/registry/{key}/sync", headers=auth_headers(sup))
    assert r.status_code == 200
    assert r.json()["performed"] is True
    assert r.json()["syncedAtIso"]

    info = client.get(f"{API}/registry/{key}", headers=auth_headers(sup)).json()
    assert (info["count"], info["dueForSync"], info["syncInProgress"]) == (2, False, False)

    r = client.get(f"{API}/registry/{key}/search", params={"q": "політехніка"}, headers=auth_headers(user))
    assert [i["externalId"] for i in r.json()["results"]] == ["2"]
    r = client.get(f"{API}/registry/{key}/search", params={"q": "02070944"}, headers=auth_headers(user))
    assert [i["externalId"] for i in r.json()["results"]] == ["1"]

    assert client.get(f"{API}/registry/unknown", headers=auth_headers(sup)).status_code == 400
