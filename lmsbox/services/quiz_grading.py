"""
Quiz scoring and learner-facing quiz views.

Scoring is all-or-nothing per question:
- single answer (mc_single, true_false): exactly one option selected and it is correct
- multiple answer (mc_multi): the selected set equals the correct set
"""
from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from lmsbox.db import models

SINGLE_ANSWER_TYPES = ("mc_single", "true_false")


@dataclass
class GradeResult:
    earned_points: int
    total_points: int
    score: int
    passed: bool
    question_results: List[Dict[str, Any]] = field(default_factory=list)


def _normalize_selection(values: Optional[Iterable[Any]]) -> set:
    selected = set()
    for value in values or []:
        selected.add(value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)))
    return selected


def question_is_correct(question: models.QuizQuestion, selected: set) -> bool:
    correct = {option.id for option in question.options if option.is_correct}
    if question.question_type in SINGLE_ANSWER_TYPES:
        return len(selected) == 1 and selected <= correct
    return bool(correct) and selected == correct


def grade(quiz: models.Quiz, answers: Mapping[Any, Iterable[Any]]) -> GradeResult:
    """Score a submission; ``score`` is the truncated percentage of points earned."""
    by_question = {}
    for key, values in (answers or {}).items():
        qid = key if isinstance(key, uuid.UUID) else uuid.UUID(str(key))
        by_question[qid] = _normalize_selection(values)

    earned = 0
    total = 0
    results: List[Dict[str, Any]] = []
    for question in quiz.questions:
        points = question.points or 0
        total += points
        selected = by_question.get(question.id, set())
        # Options that belong to another question never count
        valid_ids = {option.id for option in question.options}
        selected = selected & valid_ids
        is_correct = question_is_correct(question, selected)
        awarded = points if is_correct else 0
        earned += awarded
        results.append(
            {
                "question_id": question.id,
                "selected_option_ids": sorted(selected, key=str),
                "correct_option_ids": [option.id for option in question.options if option.is_correct],
                "is_correct": is_correct,
                "points_awarded": awarded,
                "points": points,
                "explanation": question.explanation,
            }
        )

    score = int(earned / total * 100) if total else 0
    return GradeResult(
        earned_points=earned,
        total_points=total,
        score=score,
        passed=score >= (quiz.passing_score or 0),
        question_results=results,
    )


def learner_view(
    quiz: models.Quiz,
    *,
    attempts_used: int,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Quiz as shown to a learner: no correct flags, no explanations."""
    rng = rng or random.Random()
    questions = list(quiz.questions)
    if quiz.shuffle_questions:
        rng.shuffle(questions)
    rendered = []
    for question in questions:
        options = list(question.options)
        if quiz.shuffle_answers:
            rng.shuffle(options)
        rendered.append(
            {
                "id": question.id,
                "question": question.question,
                "question_type": question.question_type,
                "points": question.points,
                "options": [{"id": option.id, "text": option.text} for option in options],
            }
        )
    max_attempts = quiz.max_attempts or 0
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "course_id": quiz.course_id,
        "passing_score": quiz.passing_score,
        "is_timed": quiz.is_timed,
        "time_limit_minutes": quiz.time_limit_minutes if quiz.is_timed else None,
        "allow_retake": quiz.allow_retake,
        "max_attempts": max_attempts,
        "attempts_used": attempts_used,
        "attempts_remaining": max(max_attempts - attempts_used, 0),
        "questions": rendered,
    }
