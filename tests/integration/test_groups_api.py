import uuid

from lmsbox.db import models


def test_owner_creates_group_and_lists_it(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")

    r = client.post("/groups/", json={"name": "New Starters", "organization_id": str(org.id)}, headers=headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["name"] == "New Starters"
    assert body["organization_id"] == str(org.id)

    r = client.get("/groups/", headers=headers)
    assert r.status_code == 200
    assert [g["name"] for g in r.json()] == ["New Starters"]


def test_duplicate_group_name_conflicts(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    payload = {"name": "Ops", "organization_id": str(org.id)}
    assert client.post("/groups/", json=payload, headers=headers).status_code == 201
    r = client.post("/groups/", json=payload, headers=headers)
    assert r.status_code == 409


def test_learner_cannot_manage_groups(client, auth_headers, learner_context):
    _learner, org = learner_context
    r = client.post(
        "/groups/",
        json={"name": "Sneaky", "organization_id": str(org.id)},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 403


def test_members_and_courses_roundtrip(client, auth_headers, learner_context, course_factory, db_session):
    learner, org = learner_context
    course = course_factory(org)
    headers = auth_headers("owner@example.com")
    group_id = client.post(
        "/groups/", json={"name": "Cohort A", "organization_id": str(org.id)}, headers=headers
    ).json()["id"]

    r = client.post(f"/groups/{group_id}/members", json={"user_ids": [str(learner.id)]}, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"added": 1}

    r = client.post(f"/groups/{group_id}/courses", json={"course_ids": [str(course.id)]}, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"assigned": 1}

    detail = client.get(f"/groups/{group_id}", headers=headers).json()
    assert detail["member_count"] == 1
    assert detail["course_count"] == 1
    assert detail["members"][0]["email"] == "learner@example.com"
    assert detail["courses"][0]["id"] == str(course.id)

    # Learner now sees the course through the group
    r = client.get("/learner/courses", headers=auth_headers("learner@example.com"))
    assert r.status_code == 200
    assert [c["id"] for c in r.json()] == [str(course.id)]

    r = client.request(
        "DELETE", f"/groups/{group_id}/members", json={"user_ids": [str(learner.id)]}, headers=headers
    )
    assert r.json() == {"removed": 1}
    row = db_session.query(models.LearnerGroup).filter_by(user_id=learner.id).one()
    db_session.refresh(row)
    assert row.is_active is False

    # Re-adding reactivates the existing row
    r = client.post(f"/groups/{group_id}/members", json={"user_ids": [str(learner.id)]}, headers=headers)
    assert r.json() == {"added": 1}
    assert db_session.query(models.LearnerGroup).filter_by(user_id=learner.id).count() == 1


def test_adding_non_member_is_rejected(client, auth_headers, org_owner_context, user_factory):
    _owner, org = org_owner_context
    outsider = user_factory("outsider@example.com")
    headers = auth_headers("owner@example.com")
    group_id = client.post(
        "/groups/", json={"name": "Cohort B", "organization_id": str(org.id)}, headers=headers
    ).json()["id"]
    r = client.post(f"/groups/{group_id}/members", json={"user_ids": [str(outsider.id)]}, headers=headers)
    assert r.status_code == 422


def test_foreign_course_cannot_be_assigned(client, auth_headers, org_owner_context, organization_factory, course_factory):
    _owner, org = org_owner_context
    other = organization_factory("Other Org")
    foreign = course_factory(other)
    headers = auth_headers("owner@example.com")
    group_id = client.post(
        "/groups/", json={"name": "Cohort C", "organization_id": str(org.id)}, headers=headers
    ).json()["id"]
    r = client.post(f"/groups/{group_id}/courses", json={"course_ids": [str(foreign.id)]}, headers=headers)
    assert r.status_code == 422


def test_rename_and_delete_group(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    group_id = client.post(
        "/groups/", json={"name": "Old", "organization_id": str(org.id)}, headers=headers
    ).json()["id"]

    r = client.put(f"/groups/{group_id}", json={"name": "Renamed"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Renamed"

    r = client.delete(f"/groups/{group_id}", headers=headers)
    assert r.json() == {"status": "deleted"}
    assert client.get(f"/groups/{group_id}", headers=headers).status_code == 404


def test_unknown_group_is_404(client, auth_headers, org_owner_context):
    r = client.get(f"/groups/{uuid.uuid4()}", headers=auth_headers("owner@example.com"))
    assert r.status_code == 404
