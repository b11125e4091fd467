import pytest

from lmsbox.db import models
from lmsbox.utils.feature_flags import refresh_feature_flag_cache


@pytest.fixture
def published_survey(client, auth_headers, learner_context):
    _learner, org = learner_context
    headers = auth_headers("owner@example.com")
    r = client.post(
        "/surveys/",
        json={"title": "Course Feedback", "status": "published", "organization_id": str(org.id)},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    survey = r.json()
    questions = [
        {"question_text": "How was it?", "question_type": "rating"},
        {"question_text": "Best part", "question_type": "single_choice", "options": ["Videos", "Quizzes", " "]},
        {"question_text": "Recommend?", "question_type": "yes_no"},
        {"question_text": "Comments", "question_type": "text", "is_required": False},
    ]
    created = []
    for q in questions:
        r = client.post(f"/surveys/{survey['id']}/questions", json=q, headers=headers)
        assert r.status_code == 201, r.text
        created.append(r.json())
    return survey, created


def _answers(questions, rating=4, choice="Videos", yes_no="yes", text=None):
    rating_q, choice_q, yes_no_q, text_q = questions
    answers = [
        {"question_id": rating_q["id"], "rating_value": rating},
        {"question_id": choice_q["id"], "selected_options": [choice]},
        {"question_id": yes_no_q["id"], "answer_text": yes_no},
    ]
    if text:
        answers.append({"question_id": text_q["id"], "answer_text": text})
    return answers


def test_question_defaults(published_survey):
    _survey, questions = published_survey
    assert questions[0]["min_rating"] == 1
    assert questions[0]["max_rating"] == 5
    assert questions[1]["options"] == ["Videos", "Quizzes"]
    assert questions[2]["options"] is None


def test_choice_question_needs_two_options(client, auth_headers, published_survey):
    survey, _questions = published_survey
    r = client.post(
        f"/surveys/{survey['id']}/questions",
        json={"question_text": "Pick", "question_type": "multiple_choice", "options": ["Only"]},
        headers=auth_headers("owner@example.com"),
    )
    assert r.status_code == 422


def test_learner_submits_response(client, auth_headers, published_survey, db_session):
    survey, questions = published_survey
    headers = auth_headers("learner@example.com")
    view = client.get(f"/learner/surveys/{survey['id']}", headers=headers)
    assert view.status_code == 200
    assert view.json()["question_count"] == 4

    r = client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"answers": _answers(questions, text="Great pacing")},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    assert db_session.query(models.SurveyResponse).count() == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"rating": 9},
        {"choice": "Podcasts"},
        {"yes_no": "maybe"},
    ],
)
def test_invalid_answers_are_rejected(client, auth_headers, published_survey, overrides):
    survey, questions = published_survey
    r = client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"answers": _answers(questions, **overrides)},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 422


def test_missing_required_answer_is_rejected(client, auth_headers, published_survey):
    survey, questions = published_survey
    r = client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"answers": _answers(questions)[:2]},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 422


def test_post_course_response_marks_progress(client, auth_headers, published_survey, course_factory, learner_context, db_session):
    learner, org = learner_context
    course = course_factory(org)
    survey, questions = published_survey
    r = client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"course_id": str(course.id), "survey_type": "post_course", "answers": _answers(questions)},
        headers=auth_headers("learner@example.com"),
    )
    assert r.status_code == 201, r.text
    row = (
        db_session.query(models.LearnerProgress)
        .filter_by(user_id=learner.id, course_id=course.id, lesson_id=None)
        .one()
    )
    assert row.post_survey_completed is True
    assert row.pre_survey_completed is False


def test_draft_survey_is_hidden_from_learners(client, auth_headers, learner_context):
    _learner, org = learner_context
    survey = client.post(
        "/surveys/", json={"title": "Draft", "organization_id": str(org.id)}, headers=auth_headers("owner@example.com")
    ).json()
    assert client.get(f"/learner/surveys/{survey['id']}", headers=auth_headers("learner@example.com")).status_code == 404


def test_analytics_and_responses(client, auth_headers, published_survey, user_factory, membership_factory, learner_context):
    _learner, org = learner_context
    survey, questions = published_survey
    second = user_factory("second@example.com")
    membership_factory(org, second, role="learner")

    client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"answers": _answers(questions, rating=5, text="Loved it")},
        headers=auth_headers("learner@example.com"),
    )
    client.post(
        f"/learner/surveys/{survey['id']}/responses",
        json={"answers": _answers(questions, rating=2, choice="Quizzes", yes_no="no")},
        headers=auth_headers("second@example.com"),
    )
    owner = auth_headers("owner@example.com")

    responses = client.get(f"/surveys/{survey['id']}/responses", headers=owner).json()
    assert sorted(r["user_email"] for r in responses) == ["learner@example.com", "second@example.com"]

    stats = client.get(f"/surveys/{survey['id']}/analytics", headers=owner).json()
    assert stats["total_responses"] == 2
    rating, choice, yes_no, text = stats["questions"]
    assert rating["average_rating"] == 3.5
    assert rating["distribution"] == {"1": 0, "2": 1, "3": 0, "4": 0, "5": 1}
    assert choice["option_counts"] == {"Videos": 1, "Quizzes": 1}
    assert yes_no["yes_percentage"] == 50.0
    assert text["latest_answers"] == ["Loved it"]


def test_learner_cannot_read_analytics(client, auth_headers, published_survey):
    survey, _questions = published_survey
    r = client.get(f"/surveys/{survey['id']}/analytics", headers=auth_headers("learner@example.com"))
    assert r.status_code == 403


def test_instructor_reads_but_cannot_write(client, auth_headers, published_survey, instructor_context):
    survey, _questions = published_survey
    headers = auth_headers("instructor@example.com")
    assert client.get(f"/surveys/{survey['id']}", headers=headers).status_code == 200
    assert client.put(f"/surveys/{survey['id']}", json={"title": "Mine"}, headers=headers).status_code == 403


def test_surveys_disabled(client, auth_headers, learner_context, monkeypatch):
    monkeypatch.setenv("FEATURE_SURVEYS_ENABLED", "off")
    refresh_feature_flag_cache()
    headers = auth_headers("owner@example.com")
    assert client.get("/surveys/", headers=headers).status_code == 503
    assert client.get("/learner/surveys/00000000-0000-0000-0000-000000000000", headers=headers).status_code == 503
