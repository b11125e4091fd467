import uuid


def _create(client, headers, **payload):
    body = {"name": "ci", "scopes": ["read"]}
    body.update(payload)
    r = client.post("/users/me/tokens", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_create_list_and_use_token(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    created = _create(client, headers, scopes=["read", "write"])
    assert created["token"].startswith("lms_pat_")
    assert created["kind"] == "api"
    assert created["last_four"] == created["token"][-4:]

    listed = client.get("/users/me/tokens", headers=headers).json()
    assert [t["id"] for t in listed] == [created["id"]]
    assert "token" not in listed[0]

    r = client.get("/users/me", headers=_bearer(created["token"]))
    assert r.status_code == 200
    assert r.json()["email"] == "owner@example.com"


def test_read_only_token_cannot_write(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    token = _create(client, auth_headers("owner@example.com"))["token"]
    assert client.get("/groups/", headers=_bearer(token)).status_code == 200
    r = client.post("/groups/", json={"name": "Nope", "organization_id": str(org.id)}, headers=_bearer(token))
    assert r.status_code == 403


def test_org_restricted_token(client, auth_headers, org_owner_context, organization_factory, membership_factory):
    owner, org = org_owner_context
    other = organization_factory("Second Org")
    membership_factory(other, owner, role="owner")
    token = _create(client, auth_headers("owner@example.com"), scopes=["write"], organization_id=str(org.id))["token"]

    r = client.post("/groups/", json={"name": "Allowed", "organization_id": str(org.id)}, headers=_bearer(token))
    assert r.status_code == 201
    r = client.post("/groups/", json={"name": "Denied", "organization_id": str(other.id)}, headers=_bearer(token))
    assert r.status_code == 403

    # The token's organization is the default context when none is given
    names = [g["name"] for g in client.get("/groups/", headers=_bearer(token)).json()]
    assert names == ["Allowed"]


def test_org_restricted_token_on_learner_routes(
    client, auth_headers, learner_context, organization_factory, membership_factory, course_factory, assign_course
):
    learner, home = learner_context
    foreign = organization_factory("Foreign Org")
    membership_factory(foreign, learner, role="learner")
    home_course = course_factory(home, title="Home Course")
    foreign_course = course_factory(foreign, title="Foreign Course")
    assign_course(home_course, learner)
    assign_course(foreign_course, learner)
    token = _create(
        client, auth_headers("learner@example.com"), scopes=["read", "write"], organization_id=str(home.id)
    )["token"]
    bearer = _bearer(token)

    titles = [c["title"] for c in client.get("/learner/courses", headers=bearer).json()]
    assert titles == ["Home Course"]
    assert client.get(f"/learner/courses/{home_course.id}", headers=bearer).status_code == 200

    assert client.get(f"/learner/courses/{foreign_course.id}", headers=bearer).status_code == 403
    assert client.post(f"/learner/progress/courses/{foreign_course.id}/start", headers=bearer).status_code == 403
    r = client.post(f"/learner/progress/lessons/{foreign_course.lessons[0].id}/complete", headers=bearer)
    assert r.status_code == 403

    # Proxy-authenticated requests are not restricted
    r = client.get(f"/learner/courses/{foreign_course.id}", headers=auth_headers("learner@example.com"))
    assert r.status_code == 200


def test_token_for_foreign_org_is_refused(client, auth_headers, org_owner_context, organization_factory):
    other = organization_factory("Not Mine")
    r = client.post(
        "/users/me/tokens",
        json={"name": "x", "scopes": ["read"], "organization_id": str(other.id)},
        headers=auth_headers("owner@example.com"),
    )
    assert r.status_code == 403


def test_invalid_scope_is_rejected(client, auth_headers, org_owner_context):
    r = client.post("/users/me/tokens", json={"name": "x", "scopes": ["admin"]}, headers=auth_headers("owner@example.com"))
    assert r.status_code == 422


def test_revoke_and_rotate(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    first = _create(client, headers, name="first")
    second = _create(client, headers, name="second")

    assert client.delete(f"/users/me/tokens/{first['id']}", headers=headers).json() == {"message": "revoked"}
    assert client.get("/users/me", headers=_bearer(first["token"])).status_code == 401

    rotated = client.post(f"/users/me/tokens/{second['id']}/rotate", headers=headers)
    assert rotated.status_code == 200, rotated.text
    new_token = rotated.json()["token"]
    assert new_token != second["token"]
    assert client.get("/users/me", headers=_bearer(second["token"])).status_code == 401
    assert client.get("/users/me", headers=_bearer(new_token)).status_code == 200


def test_rename_token(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    created = _create(client, headers)
    r = client.patch(f"/users/me/tokens/{created['id']}", json={"name": "renamed"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["name"] == "renamed"


def test_unknown_token_ids(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    assert client.delete(f"/users/me/tokens/{uuid.uuid4()}", headers=headers).status_code == 404
    assert client.post(f"/users/me/tokens/{uuid.uuid4()}/rotate", headers=headers).status_code == 404


def test_malformed_bearer_is_rejected(client):
    assert client.get("/users/me", headers=_bearer("garbage")).status_code == 401
