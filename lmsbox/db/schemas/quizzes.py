import uuid
from typing import Dict, List, Optional
from pydantic import BaseModel, field_validator, model_validator

QUESTION_TYPES = ("mc_single", "mc_multi", "true_false")


class QuizOptionPayload(BaseModel):
    text: str
    is_correct: bool = False


class QuizQuestionPayload(BaseModel):
    question: str
    question_type: str = "mc_single"
    points: int = 1
    explanation: Optional[str] = None
    options: List[QuizOptionPayload]

    @field_validator("question_type")
    @classmethod
    def _validate_type(cls, v: str):
        t = (v or "mc_single").strip().lower()
        if t not in QUESTION_TYPES:
            raise ValueError(f"Invalid question_type '{v}'")
        return t

    @field_validator("points")
    @classmethod
    def _validate_points(cls, v: int):
        if v < 0:
            raise ValueError("points must be >= 0")
        return v

    @model_validator(mode="after")
    def _validate_options(self):
        if len(self.options) < 2:
            raise ValueError("A question needs at least two options")
        correct = sum(1 for o in self.options if o.is_correct)
        if self.question_type in ("mc_single", "true_false") and correct != 1:
            raise ValueError(f"{self.question_type} questions need exactly one correct option")
        if self.question_type == "mc_multi" and correct < 1:
            raise ValueError("mc_multi questions need at least one correct option")
        return self


class QuizSettings(BaseModel):
    description: Optional[str] = None
    course_id: Optional[uuid.UUID] = None
    passing_score: Optional[int] = None
    is_timed: Optional[bool] = None
    time_limit_minutes: Optional[int] = None
    shuffle_questions: Optional[bool] = None
    shuffle_answers: Optional[bool] = None
    show_results: Optional[bool] = None
    allow_retake: Optional[bool] = None
    max_attempts: Optional[int] = None

    @field_validator("passing_score")
    @classmethod
    def _validate_passing_score(cls, v: Optional[int]):
        if v is not None and not 0 <= v <= 100:
            raise ValueError("passing_score must be within 0..100")
        return v

    @field_validator("time_limit_minutes", "max_attempts")
    @classmethod
    def _validate_positive(cls, v: Optional[int]):
        if v is not None and v < 1:
            raise ValueError("must be >= 1")
        return v


class QuizCreate(QuizSettings):
    title: str
    organization_id: Optional[uuid.UUID] = None
    questions: List[QuizQuestionPayload] = []

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("Quiz title is required")
        return s


class QuizUpdate(QuizSettings):
    title: Optional[str] = None
    # When provided, questions replace the existing set wholesale
    questions: Optional[List[QuizQuestionPayload]] = None


class QuizSubmission(BaseModel):
    answers: Dict[uuid.UUID, List[uuid.UUID]]
    lesson_id: Optional[uuid.UUID] = None
