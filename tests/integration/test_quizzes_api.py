import uuid

import pytest

from lmsbox.db import models


def _quiz_payload(course_id, **overrides):
    payload = {
        "title": "Safety Check",
        "course_id": str(course_id),
        "passing_score": 50,
        "max_attempts": 2,
        "questions": [
            {
                "question": "Is the floor wet?",
                "question_type": "true_false",
                "points": 1,
                "options": [{"text": "True", "is_correct": True}, {"text": "False"}],
            },
            {
                "question": "Pick the safe items",
                "question_type": "mc_multi",
                "points": 1,
                "options": [
                    {"text": "Helmet", "is_correct": True},
                    {"text": "Gloves", "is_correct": True},
                    {"text": "Sandals"},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def course_with_quiz(client, auth_headers, learner_context, instructor_context, course_factory, assign_course, db_session):
    learner, org = learner_context
    course = course_factory(org)
    assign_course(course, learner)
    r = client.post("/quizzes/", json=_quiz_payload(course.id), headers=auth_headers("instructor@example.com"))
    assert r.status_code == 201, r.text
    quiz = r.json()
    lesson = models.Lesson(course_id=course.id, title="Quiz", ordinal=1, lesson_type="quiz", quiz_id=uuid.UUID(quiz["id"]))
    db_session.add(lesson)
    db_session.commit()
    return course, quiz, lesson


def _correct_answers(quiz):
    return {
        q["id"]: [o["id"] for o in q["options"] if o["is_correct"]]
        for q in quiz["questions"]
    }


def test_author_sees_correct_flags(course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    assert quiz["question_count"] == 2
    flags = [o["is_correct"] for o in quiz["questions"][1]["options"]]
    assert flags == [True, True, False]


def test_learner_cannot_author(client, auth_headers, learner_context, course_factory):
    _learner, org = learner_context
    course = course_factory(org)
    r = client.post("/quizzes/", json=_quiz_payload(course.id), headers=auth_headers("learner@example.com"))
    assert r.status_code == 403


def test_invalid_question_is_rejected(client, auth_headers, org_owner_context, course_factory):
    _owner, org = org_owner_context
    course = course_factory(org)
    payload = _quiz_payload(course.id)
    payload["questions"][0]["options"][1]["is_correct"] = True
    r = client.post("/quizzes/", json=payload, headers=auth_headers("owner@example.com"))
    assert r.status_code == 422


def test_learner_view_hides_answers(client, auth_headers, course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    r = client.get(f"/learner/quizzes/{quiz['id']}", headers=auth_headers("learner@example.com"))
    assert r.status_code == 200
    view = r.json()
    assert view["attempts_remaining"] == 2
    assert view["has_passed"] is False
    for question in view["questions"]:
        assert "explanation" not in question
        for option in question["options"]:
            assert set(option) == {"id", "text"}


def test_passing_submission_completes_quiz_lesson(client, auth_headers, course_with_quiz, db_session):
    course, quiz, lesson = course_with_quiz
    headers = auth_headers("learner@example.com")
    r = client.post(
        f"/learner/quizzes/{quiz['id']}/submit",
        json={"answers": _correct_answers(quiz), "lesson_id": str(lesson.id)},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["score"] == 100
    assert body["passed"] is True
    assert body["attempts_used"] == 1
    assert body["attempts_remaining"] == 1
    assert all(item["is_correct"] for item in body["question_results"])

    row = (
        db_session.query(models.LearnerProgress)
        .filter_by(lesson_id=lesson.id)
        .one()
    )
    assert row.completed is True
    progress = client.get(f"/learner/progress/courses/{course.id}", headers=headers).json()
    assert progress["progress_percent"] == 50


def test_partial_mc_multi_scores_zero_for_that_question(client, auth_headers, course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    answers = _correct_answers(quiz)
    multi = quiz["questions"][1]
    answers[multi["id"]] = [multi["options"][0]["id"]]
    r = client.post(f"/learner/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth_headers("learner@example.com"))
    body = r.json()
    assert body["score"] == 50
    assert body["passed"] is True


def test_attempt_limit(client, auth_headers, course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    headers = auth_headers("learner@example.com")
    url = f"/learner/quizzes/{quiz['id']}/submit"
    assert client.post(url, json={"answers": {}}, headers=headers).json()["passed"] is False
    assert client.post(url, json={"answers": {}}, headers=headers).status_code == 200
    r = client.post(url, json={"answers": {}}, headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Maximum attempts reached"

    attempts = client.get(f"/quizzes/{quiz['id']}/attempts", headers=auth_headers("instructor@example.com")).json()
    assert len(attempts) == 2


def test_no_retake_after_pass(client, auth_headers, course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    client.put(f"/quizzes/{quiz['id']}", json={"allow_retake": False, "max_attempts": 5}, headers=auth_headers("instructor@example.com"))
    headers = auth_headers("learner@example.com")
    url = f"/learner/quizzes/{quiz['id']}/submit"
    assert client.post(url, json={"answers": _correct_answers(quiz)}, headers=headers).json()["passed"] is True
    assert client.post(url, json={"answers": _correct_answers(quiz)}, headers=headers).status_code == 409


def test_hidden_results_are_omitted(client, auth_headers, course_with_quiz):
    _course, quiz, _lesson = course_with_quiz
    client.put(f"/quizzes/{quiz['id']}", json={"show_results": False}, headers=auth_headers("instructor@example.com"))
    r = client.post(
        f"/learner/quizzes/{quiz['id']}/submit",
        json={"answers": _correct_answers(quiz)},
        headers=auth_headers("learner@example.com"),
    )
    assert "question_results" not in r.json()


def test_wrong_lesson_id_is_rejected(client, auth_headers, course_with_quiz):
    course, quiz, _lesson = course_with_quiz
    content_lesson = course.lessons[0]
    r = client.post(
        f"/learner/quizzes/{quiz['id']}/submit",
        json={"answers": {}, "lesson_id": str(content_lesson.id)},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 422


def test_quiz_of_unassigned_course_is_forbidden(client, auth_headers, learner_context, course_factory):
    _learner, org = learner_context
    course = course_factory(org, title="Hidden")
    quiz = client.post("/quizzes/", json=_quiz_payload(course.id), headers=auth_headers("owner@example.com")).json()
    r = client.get(f"/learner/quizzes/{quiz['id']}", headers=auth_headers("learner@example.com"))
    assert r.status_code == 403


def test_standalone_quiz_cannot_complete_lesson_of_unassigned_course(
    client, auth_headers, learner_context, course_factory, db_session
):
    _learner, org = learner_context
    course = course_factory(org, title="Not Assigned")
    payload = _quiz_payload(course.id, organization_id=str(org.id))
    payload["course_id"] = None
    r = client.post(
        "/quizzes/",
        json=payload,
        headers=auth_headers("owner@example.com"),
    )
    assert r.status_code == 201, r.text
    quiz = r.json()
    lesson = models.Lesson(course_id=course.id, title="Quiz", ordinal=1, lesson_type="quiz", quiz_id=uuid.UUID(quiz["id"]))
    db_session.add(lesson)
    db_session.commit()

    r = client.post(
        f"/learner/quizzes/{quiz['id']}/submit",
        json={"answers": _correct_answers(quiz), "lesson_id": str(lesson.id)},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 403
    assert db_session.query(models.LearnerProgress).filter_by(course_id=course.id).count() == 0
