import uuid

import pytest

from lmsbox.db import models
from lmsbox.utils.feature_flags import refresh_feature_flag_cache


@pytest.fixture
def three_lesson_course(learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(
        org,
        lessons=[{"title": "One"}, {"title": "Two"}, {"title": "Three"}, {"title": "Extra", "is_optional": True}],
    )
    assign_course(course, learner)
    return course


def _lesson_ids(course):
    return [lesson.id for lesson in sorted(course.lessons, key=lambda l: l.ordinal)]


def test_unassigned_course_is_hidden(client, auth_headers, learner_context, course_factory):
    _learner, org = learner_context
    course = course_factory(org)
    headers = auth_headers("learner@example.com")
    assert client.get("/learner/courses", headers=headers).json() == []
    assert client.get(f"/learner/courses/{course.id}", headers=headers).status_code == 404


def test_archived_course_is_hidden_even_when_assigned(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(org, status="archived")
    assign_course(course, learner)
    r = client.get(f"/learner/courses/{course.id}", headers=auth_headers("learner@example.com"))
    assert r.status_code == 404


def test_start_course_creates_rows(client, auth_headers, three_lesson_course, db_session):
    headers = auth_headers("learner@example.com")
    r = client.post(f"/learner/progress/courses/{three_lesson_course.id}/start", headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["progress_percent"] == 0
    assert body["total_lessons"] == 4
    # Idempotent
    client.post(f"/learner/progress/courses/{three_lesson_course.id}/start", headers=headers)
    rows = db_session.query(models.LearnerProgress).filter_by(course_id=three_lesson_course.id).all()
    assert len(rows) == 5
    assert sum(1 for row in rows if row.lesson_id is None) == 1


def test_course_progress_rolls_up_required_lessons(client, auth_headers, three_lesson_course):
    headers = auth_headers("learner@example.com")
    first, second, third, optional = _lesson_ids(three_lesson_course)

    r = client.post(f"/learner/progress/lessons/{first}/complete", headers=headers)
    assert r.json()["completed"] is True
    progress = client.get(f"/learner/progress/courses/{three_lesson_course.id}", headers=headers).json()
    assert progress["progress_percent"] == 33

    # Optional lessons never move the needle
    client.post(f"/learner/progress/lessons/{optional}/complete", headers=headers)
    progress = client.get(f"/learner/progress/courses/{three_lesson_course.id}", headers=headers).json()
    assert progress["progress_percent"] == 33

    client.put(f"/learner/progress/lessons/{second}", json={"progress_percent": 100}, headers=headers)
    progress = client.get(f"/learner/progress/courses/{three_lesson_course.id}", headers=headers).json()
    assert progress["progress_percent"] == 67
    assert progress["completed"] is False

    client.post(f"/learner/progress/lessons/{third}/complete", headers=headers)
    progress = client.get(f"/learner/progress/courses/{three_lesson_course.id}", headers=headers).json()
    assert progress["progress_percent"] == 100
    assert progress["completed"] is True
    assert progress["completed_at"] is not None


def test_lesson_percent_is_clamped_and_never_uncompletes(client, auth_headers, three_lesson_course):
    headers = auth_headers("learner@example.com")
    first = _lesson_ids(three_lesson_course)[0]
    r = client.put(f"/learner/progress/lessons/{first}", json={"progress_percent": 250}, headers=headers)
    assert r.json()["progress_percent"] == 100
    assert r.json()["completed"] is True

    r = client.put(f"/learner/progress/lessons/{first}", json={"progress_percent": 40}, headers=headers)
    assert r.json()["progress_percent"] == 40
    assert r.json()["completed"] is True


def test_tracking_accumulates_time_and_video_position(client, auth_headers, three_lesson_course):
    headers = auth_headers("learner@example.com")
    first = _lesson_ids(three_lesson_course)[0]
    url = f"/learner/courses/{three_lesson_course.id}/lessons/{first}/progress"

    client.post(url, json={"video_timestamp": 30, "time_spent_seconds": 30}, headers=headers)
    r = client.post(url, json={"video_timestamp": 75, "time_spent_seconds": 45, "progress_percent": 60}, headers=headers)
    assert r.status_code == 200, r.text
    lesson = r.json()["lesson"]
    assert lesson["video_timestamp"] == 75
    assert lesson["total_time_spent_seconds"] == 75
    assert lesson["progress_percent"] == 60
    assert lesson["completed"] is False

    r = client.post(url, json={"completed": True}, headers=headers)
    assert r.json()["lesson"]["completed"] is True
    assert r.json()["course"]["progress_percent"] == 33

    detail = client.get(f"/learner/courses/{three_lesson_course.id}", headers=headers).json()
    assert detail["total_time_spent_seconds"] == 75
    assert detail["last_accessed_lesson_id"] == str(first)


def test_lesson_from_another_course_is_404(client, auth_headers, three_lesson_course, course_factory, learner_context):
    _learner, org = learner_context
    other = course_factory(org, title="Other")
    foreign_lesson = other.lessons[0].id
    r = client.post(
        f"/learner/courses/{three_lesson_course.id}/lessons/{foreign_lesson}/progress",
        json={"completed": True},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 404


def test_progress_filter(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    started = course_factory(org, title="Started", lessons=[{"title": "a"}, {"title": "b"}])
    untouched = course_factory(org, title="Untouched")
    assign_course(started, learner, name="g1")
    assign_course(untouched, learner, name="g2")
    headers = auth_headers("learner@example.com")
    client.post(f"/learner/progress/lessons/{started.lessons[0].id}/complete", headers=headers)

    def titles(flt):
        return sorted(c["title"] for c in client.get(f"/learner/courses?progress={flt}", headers=headers).json())

    assert titles("all") == ["Started", "Untouched"]
    assert titles("in_progress") == ["Started"]
    assert titles("not_started") == ["Untouched"]
    assert titles("completed") == []
    assert client.get("/learner/courses?progress=bogus", headers=headers).status_code == 422


def test_certificate_requires_completion_then_is_idempotent(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(org)
    assign_course(course, learner)
    headers = auth_headers("learner@example.com")

    r = client.post(f"/learner/courses/{course.id}/certificate", headers=headers)
    assert r.status_code == 409

    client.post(f"/learner/progress/lessons/{course.lessons[0].id}/complete", headers=headers)
    first = client.post(f"/learner/courses/{course.id}/certificate", headers=headers).json()
    assert first["newly_issued"] is True
    assert first["certificate_id"].startswith("C-")

    again = client.post(f"/learner/courses/{course.id}/certificate", headers=headers).json()
    assert again["newly_issued"] is False
    assert again["certificate_id"] == first["certificate_id"]

    listed = client.get("/learner/courses/certificates", headers=headers).json()
    assert [c["certificate_id"] for c in listed] == [first["certificate_id"]]


def test_certificate_downloads(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(org)
    assign_course(course, learner)
    headers = auth_headers("learner@example.com")
    client.post(f"/learner/progress/lessons/{course.lessons[0].id}/complete", headers=headers)

    png = client.get(f"/learner/courses/{course.id}/certificate.png", headers=headers)
    assert png.status_code == 200
    assert png.headers["content-type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")

    pdf = client.get(f"/learner/courses/{course.id}/certificate.pdf", headers=headers)
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")


def test_certificates_disabled_returns_503(client, auth_headers, learner_context, course_factory, monkeypatch):
    _learner, org = learner_context
    course = course_factory(org)
    monkeypatch.setenv("FEATURE_CERTIFICATES_ENABLED", "false")
    refresh_feature_flag_cache()
    r = client.post(f"/learner/courses/{course.id}/certificate", headers=auth_headers("learner@example.com"))
    assert r.status_code == 503


def test_unknown_lesson_is_404(client, auth_headers, learner_context):
    r = client.post(f"/learner/progress/lessons/{uuid.uuid4()}/complete", headers=auth_headers("learner@example.com"))
    assert r.status_code == 404


def test_course_roll_up_rounds_half_to_even(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(org, lessons=[{"title": f"Part {n}"} for n in range(8)])
    assign_course(course, learner)
    headers = auth_headers("learner@example.com")

    client.post(f"/learner/progress/lessons/{_lesson_ids(course)[0]}/complete", headers=headers)
    progress = client.get(f"/learner/progress/courses/{course.id}", headers=headers).json()
    # 1/8 is 12.5 and rounds to the even neighbour
    assert progress["progress_percent"] == 12
    assert progress["completed"] is False


def test_pathway_roll_up_rounds_half_to_even(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    owner = auth_headers("owner@example.com")
    me = auth_headers("learner@example.com")
    courses = [course_factory(org, title=f"Module {n}") for n in range(8)]
    for course in courses:
        assign_course(course, learner)
    pathway = client.post(
        "/pathways/", json={"title": "Eight Modules", "organization_id": str(org.id)}, headers=owner
    ).json()
    for course in courses:
        r = client.post(f"/pathways/{pathway['id']}/courses", json={"course_id": str(course.id)}, headers=owner)
        assert r.status_code == 201, r.text
    client.post(f"/pathways/{pathway['id']}/enrollments", json={"user_ids": [str(learner.id)]}, headers=owner)

    client.post(f"/learner/progress/lessons/{courses[0].lessons[0].id}/complete", headers=me)
    detail = client.get(f"/learner/pathways/{pathway['id']}", headers=me).json()
    assert detail["progress"]["completed_courses"] == 1
    assert detail["progress"]["total_courses"] == 8
    assert detail["progress"]["progress_percent"] == 12


def test_read_only_token_cannot_mint_certificate(client, auth_headers, learner_context, course_factory, assign_course):
    learner, org = learner_context
    course = course_factory(org)
    assign_course(course, learner)
    headers = auth_headers("learner@example.com")
    client.post(f"/learner/progress/lessons/{course.lessons[0].id}/complete", headers=headers)
    r = client.post("/users/me/tokens", json={"name": "viewer", "scopes": ["read"]}, headers=headers)
    assert r.status_code == 201, r.text
    bearer = {"Authorization": f"Bearer {r.json()['token']}"}

    r = client.get(f"/learner/courses/{course.id}/certificate.png", headers=bearer)
    assert r.status_code == 403
    assert client.get("/learner/courses/certificates", headers=headers).json() == []

    # Once issued, the same token may download it
    issued = client.post(f"/learner/courses/{course.id}/certificate", headers=headers).json()
    r = client.get(f"/learner/courses/{course.id}/certificate.pdf", headers=bearer)
    assert r.status_code == 200
    assert r.headers["content-disposition"].endswith(f'{issued["certificate_id"]}.pdf"')
