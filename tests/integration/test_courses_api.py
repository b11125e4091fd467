import uuid

from lmsbox.db import models


def _create(client, headers, **fields):
    payload = {
        "title": "Forklift Safety",
        "status": "published",
        "tags": ["safety", "safety", " warehouse "],
        "lessons": [
            {"title": "Welcome"},
            {"title": "Walkthrough", "lesson_type": "video", "video_url": "https://cdn.test/v.mp4", "video_duration_seconds": 125},
        ],
    }
    payload.update(fields)
    r = client.post("/courses/", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_instructor_creates_course_with_lessons(client, auth_headers, instructor_context, db_session):
    course = _create(client, auth_headers("instructor@example.com"))
    assert course["tags"] == ["safety", "warehouse"]
    assert [l["title"] for l in course["lessons"]] == ["Welcome", "Walkthrough"]
    assert [l["ordinal"] for l in course["lessons"]] == [0, 1]
    audit = db_session.query(models.AuditLog).filter_by(action_type="course_create").one()
    assert audit.get_metadata()["lessons"] == 2


def test_learner_cannot_create_course(client, auth_headers, learner_context):
    r = client.post("/courses/", json={"title": "Nope"}, headers=auth_headers("learner@example.com"))
    assert r.status_code == 403


def test_invalid_status_and_lesson_type(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    assert client.post("/courses/", json={"title": "X", "status": "live"}, headers=headers).status_code == 422
    r = client.post("/courses/", json={"title": "X", "lessons": [{"title": "L", "lesson_type": "hologram"}]}, headers=headers)
    assert r.status_code == 422


def test_quiz_lesson_requires_own_quiz(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    r = client.post("/courses/", json={"title": "X", "lessons": [{"title": "Q", "lesson_type": "quiz"}]}, headers=headers)
    assert r.status_code == 422
    r = client.post(
        "/courses/",
        json={"title": "X", "lessons": [{"title": "Q", "lesson_type": "quiz", "quiz_id": str(uuid.uuid4())}]},
        headers=headers,
    )
    assert r.status_code == 422


def test_list_paginates_and_filters(client, auth_headers, org_owner_context, course_factory):
    _owner, org = org_owner_context
    course_factory(org, title="Fire Drill")
    course_factory(org, title="First Aid", status="draft")
    course_factory(org, title="Ladder Use")
    headers = auth_headers("owner@example.com")

    page = client.get("/courses/?page_size=2", headers=headers).json()
    assert page["total"] == 3
    assert len(page["items"]) == 2

    drafts = client.get("/courses/?status=draft", headers=headers).json()
    assert [c["title"] for c in drafts["items"]] == ["First Aid"]

    search = client.get("/courses/?search=fir", headers=headers).json()
    assert sorted(c["title"] for c in search["items"]) == ["Fire Drill", "First Aid"]


def test_list_requires_membership(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    r = client.get("/courses/", headers={**auth_headers("stranger@example.com"), "X-Organization-Id": str(org.id)})
    assert r.status_code == 403


def test_list_without_org_is_ambiguous_for_multi_org_users(client, auth_headers, org_owner_context, organization_factory, membership_factory):
    owner, _org = org_owner_context
    membership_factory(organization_factory("Second"), owner, role="owner")
    assert client.get("/courses/", headers=auth_headers("owner@example.com")).status_code == 422


def test_update_reorders_and_drops_lessons(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    course = _create(client, headers)
    welcome, walkthrough = course["lessons"]

    r = client.put(
        f"/courses/{course['id']}",
        json={
            "title": "Forklift Safety 2",
            "lessons": [
                {"id": walkthrough["id"], "title": "Walkthrough", "lesson_type": "video"},
                {"title": "Recap"},
            ],
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    updated = r.json()
    assert updated["title"] == "Forklift Safety 2"
    assert [(l["title"], l["ordinal"]) for l in updated["lessons"]] == [("Walkthrough", 0), ("Recap", 1)]
    assert welcome["id"] not in {l["id"] for l in updated["lessons"]}


def test_update_rejects_foreign_lesson_id(client, auth_headers, org_owner_context):
    headers = auth_headers("owner@example.com")
    course = _create(client, headers)
    r = client.put(
        f"/courses/{course['id']}",
        json={"lessons": [{"id": str(uuid.uuid4()), "title": "Ghost"}]},
        headers=headers,
    )
    assert r.status_code == 422


def test_delete_course_cleans_up(client, auth_headers, learner_context, course_factory, assign_course, db_session):
    learner, org = learner_context
    course = course_factory(org)
    assign_course(course, learner)
    client.post(f"/learner/progress/lessons/{course.lessons[0].id}/complete", headers=auth_headers("learner@example.com"))

    r = client.delete(f"/courses/{course.id}", headers=auth_headers("owner@example.com"))
    assert r.json() == {"status": "deleted"}
    assert db_session.query(models.LearnerProgress).count() == 0
    assert db_session.query(models.GroupCourse).count() == 0
    assert client.get(f"/courses/{course.id}", headers=auth_headers("owner@example.com")).status_code == 404
