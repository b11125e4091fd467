import uuid

from lmsbox.db import models


def test_create_organization_makes_creator_owner(client, auth_headers, db_session):
    headers = auth_headers("founder@example.com")
    r = client.post("/organizations/", json={"name": "Blue Harbor Training"}, headers=headers)
    assert r.status_code == 201, r.text
    org = r.json()
    assert org["slug"] == "blue-harbor-training"

    membership = db_session.query(models.OrganizationMembership).filter_by(organization_id=uuid.UUID(org["id"])).one()
    assert membership.role == "owner"

    listed = client.get("/organizations/", headers=headers).json()
    assert [o["id"] for o in listed] == [org["id"]]
    assert [o["id"] for o in client.get("/organizations/manageable", headers=headers).json()] == [org["id"]]


def test_duplicate_name_or_slug_conflicts(client, auth_headers, org_owner_context):
    headers = auth_headers("someone@example.com")
    assert client.post("/organizations/", json={"name": "Acme Academy"}, headers=headers).status_code == 409
    r = client.post("/organizations/", json={"name": "Different", "slug": "acme-academy"}, headers=headers)
    assert r.status_code == 409


def test_missing_name_is_rejected(client, auth_headers):
    r = client.post("/organizations/", json={"name": "  "}, headers=auth_headers("someone@example.com"))
    assert r.status_code == 422


def test_guest_writes_are_blocked(client):
    r = client.post("/organizations/", json={"name": "Anon"})
    assert r.status_code == 401


def test_non_member_cannot_read_org(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    r = client.get(f"/organizations/{org.id}", headers=auth_headers("stranger@example.com"))
    assert r.status_code == 403


def test_add_member_creates_user_and_lists(client, auth_headers, org_owner_context, db_session):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    r = client.post(
        f"/organizations/{org.id}/members",
        json={"email": "New.Hire@Example.com", "role": "instructor", "first_name": "Nia"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["email"] == "new.hire@example.com"
    assert r.json()["role"] == "instructor"
    assert db_session.query(models.User).filter_by(email="new.hire@example.com").one().first_name == "Nia"

    page = client.get(f"/organizations/{org.id}/members?role=instructor", headers=headers).json()
    assert page["total"] == 1
    assert page["items"][0]["email"] == "new.hire@example.com"

    again = client.post(f"/organizations/{org.id}/members", json={"email": "new.hire@example.com"}, headers=headers)
    assert again.status_code == 409


def test_add_member_validates_role_and_limit(client, auth_headers, org_owner_context, db_session):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    r = client.post(f"/organizations/{org.id}/members", json={"email": "x@example.com", "role": "wizard"}, headers=headers)
    assert r.status_code == 422

    org.max_users = 1
    db_session.commit()
    r = client.post(f"/organizations/{org.id}/members", json={"email": "x@example.com"}, headers=headers)
    assert r.status_code == 409


def test_learner_cannot_add_members(client, auth_headers, learner_context):
    _learner, org = learner_context
    r = client.post(
        f"/organizations/{org.id}/members", json={"email": "x@example.com"}, headers=auth_headers("learner@example.com")
    )
    assert r.status_code == 403


def test_last_owner_is_protected(client, auth_headers, org_owner_context):
    owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    r = client.put(f"/organizations/{org.id}/members/{owner.id}", json={"role": "admin"}, headers=headers)
    assert r.status_code == 409
    r = client.delete(f"/organizations/{org.id}/members/{owner.id}", headers=headers)
    assert r.status_code == 422


def test_role_change_and_removal(client, auth_headers, learner_context, db_session):
    learner, org = learner_context
    headers = auth_headers("owner@example.com")
    r = client.put(f"/organizations/{org.id}/members/{learner.id}", json={"role": "admin"}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "admin"

    r = client.delete(f"/organizations/{org.id}/members/{learner.id}", headers=headers)
    assert r.status_code == 200
    assert db_session.query(models.OrganizationMembership).filter_by(user_id=learner.id).count() == 0
    actions = {a.action_type for a in db_session.query(models.AuditLog).all()}
    assert {"member_role_change", "member_remove"} <= actions


def test_settings_roundtrip(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    r = client.put(
        f"/organizations/{org.id}/settings",
        json={"brand_name": "Acme Learning", "support_email": "help@acme.test", "max_users": 50},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    settings = client.get(f"/organizations/{org.id}/settings", headers=headers).json()
    assert settings["brand_name"] == "Acme Learning"
    assert settings["support_email"] == "help@acme.test"
    assert settings["max_users"] == 50


def test_max_users_below_member_count_conflicts(client, auth_headers, learner_context):
    _learner, org = learner_context
    r = client.put(f"/organizations/{org.id}/settings", json={"max_users": 1}, headers=auth_headers("owner@example.com"))
    assert r.status_code == 409


def test_delete_refused_while_courses_exist(client, auth_headers, org_owner_context, course_factory):
    _owner, org = org_owner_context
    course_factory(org)
    r = client.delete(f"/organizations/{org.id}", headers=auth_headers("owner@example.com"))
    assert r.status_code == 409


def test_admin_listing_requires_superadmin(client, auth_headers, org_owner_context, user_factory):
    assert client.get("/organizations/admin", headers=auth_headers("owner@example.com")).status_code == 403
    user_factory("root@example.com", is_superadmin=True)
    r = client.get("/organizations/admin", headers=auth_headers("root@example.com"))
    assert r.status_code == 200
    assert [o["name"] for o in r.json()] == ["Acme Academy"]


def test_admin_emails_promote_to_superadmin(client, auth_headers, org_owner_context, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com")
    r = client.get("/organizations/admin", headers=auth_headers("boss@example.com"))
    assert r.status_code == 200
