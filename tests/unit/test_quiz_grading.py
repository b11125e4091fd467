import random
import uuid

from lmsbox.db import models
from lmsbox.services.quiz_grading import grade, learner_view


def _question(question_type, options, points=1, ordinal=0):
    q = models.QuizQuestion(
        id=uuid.uuid4(),
        question=f"Q{ordinal}",
        question_type=question_type,
        points=points,
        ordinal=ordinal,
        explanation="because",
    )
    q.options = [
        models.QuizOption(id=uuid.uuid4(), text=text, is_correct=correct, ordinal=i)
        for i, (text, correct) in enumerate(options)
    ]
    return q


def _quiz(questions, passing_score=70, **fields):
    quiz = models.Quiz(
        id=uuid.uuid4(),
        organization_id=uuid.uuid4(),
        title="Check",
        passing_score=passing_score,
        max_attempts=fields.pop("max_attempts", 3),
        is_timed=fields.pop("is_timed", False),
        time_limit_minutes=fields.pop("time_limit_minutes", 30),
        shuffle_questions=fields.pop("shuffle_questions", False),
        shuffle_answers=fields.pop("shuffle_answers", False),
        allow_retake=True,
        **fields,
    )
    quiz.questions = questions
    return quiz


def _correct(q):
    return [o.id for o in q.options if o.is_correct]


def test_all_correct_scores_100_and_passes():
    q1 = _question("mc_single", [("a", True), ("b", False)])
    q2 = _question("true_false", [("True", False), ("False", True)], ordinal=1)
    quiz = _quiz([q1, q2])
    result = grade(quiz, {q1.id: _correct(q1), q2.id: _correct(q2)})
    assert result.score == 100
    assert result.earned_points == result.total_points == 2
    assert result.passed is True
    assert all(r["is_correct"] for r in result.question_results)


def test_score_is_truncated_percentage_of_points():
    q1 = _question("mc_single", [("a", True), ("b", False)], points=1)
    q2 = _question("mc_single", [("a", True), ("b", False)], points=1, ordinal=1)
    q3 = _question("mc_single", [("a", True), ("b", False)], points=1, ordinal=2)
    quiz = _quiz([q1, q2, q3], passing_score=60)
    result = grade(quiz, {str(q1.id): [str(o) for o in _correct(q1)], str(q2.id): _correct(q2)})
    # 2/3 -> 66.67 truncated
    assert result.score == 66
    assert result.passed is True


def test_single_answer_with_two_selections_is_wrong():
    q = _question("mc_single", [("a", True), ("b", False), ("c", False)])
    quiz = _quiz([q])
    result = grade(quiz, {q.id: [o.id for o in q.options[:2]]})
    assert result.score == 0
    assert result.passed is False


def test_multi_answer_needs_exact_set():
    q = _question("mc_multi", [("a", True), ("b", True), ("c", False)], points=2)
    quiz = _quiz([q])
    partial = grade(quiz, {q.id: [q.options[0].id]})
    assert partial.earned_points == 0
    exact = grade(quiz, {q.id: [q.options[1].id, q.options[0].id]})
    assert exact.earned_points == 2
    extra = grade(quiz, {q.id: [o.id for o in q.options]})
    assert extra.earned_points == 0


def test_options_from_other_questions_are_ignored():
    q1 = _question("mc_single", [("a", True), ("b", False)])
    q2 = _question("mc_single", [("a", True), ("b", False)], ordinal=1)
    quiz = _quiz([q1, q2])
    # q2's correct option submitted alongside q1's correct one
    result = grade(quiz, {q1.id: _correct(q1) + _correct(q2)})
    assert result.question_results[0]["is_correct"] is True
    assert result.question_results[0]["selected_option_ids"] == _correct(q1)


def test_unanswered_and_empty_quiz():
    q = _question("mc_single", [("a", True), ("b", False)])
    assert grade(_quiz([q]), {}).score == 0
    empty = grade(_quiz([], passing_score=0), {})
    assert empty.total_points == 0 and empty.score == 0
    assert empty.passed is True


def test_learner_view_hides_answers_and_counts_attempts():
    q = _question("mc_single", [("a", True), ("b", False)])
    quiz = _quiz([q], max_attempts=3)
    view = learner_view(quiz, attempts_used=1)
    assert view["attempts_remaining"] == 2
    assert view["time_limit_minutes"] is None
    option = view["questions"][0]["options"][0]
    assert set(option) == {"id", "text"}
    assert "explanation" not in view["questions"][0]


def test_learner_view_shuffles_with_supplied_rng():
    questions = [_question("mc_single", [("a", True), ("b", False)], ordinal=i) for i in range(6)]
    quiz = _quiz(questions, shuffle_questions=True, is_timed=True, time_limit_minutes=10)
    view = learner_view(quiz, attempts_used=5, rng=random.Random(7))
    assert sorted(q["id"] for q in view["questions"]) == sorted(q.id for q in questions)
    assert view["time_limit_minutes"] == 10
    assert view["attempts_remaining"] == 0
