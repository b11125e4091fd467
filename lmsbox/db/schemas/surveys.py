import uuid
from typing import List, Optional
from pydantic import BaseModel, field_validator, model_validator

SURVEY_STATUSES = ("draft", "published")
SURVEY_QUESTION_TYPES = ("single_choice", "multiple_choice", "text", "rating", "yes_no")
SURVEY_TYPES = ("pre_course", "post_course", "general")
CHOICE_TYPES = ("single_choice", "multiple_choice")


class SurveyCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: str = "draft"
    organization_id: Optional[uuid.UUID] = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("Survey title is required")
        return s

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str):
        s = (v or "draft").strip().lower()
        if s not in SURVEY_STATUSES:
            raise ValueError(f"Invalid status '{v}'")
        return s


class SurveyUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: Optional[str]):
        if v is None:
            return v
        s = v.strip().lower()
        if s not in SURVEY_STATUSES:
            raise ValueError(f"Invalid status '{v}'")
        return s


class SurveyQuestionPayload(BaseModel):
    question_text: str
    question_type: str = "text"
    options: Optional[List[str]] = None
    order_index: Optional[int] = None
    is_required: bool = True
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None

    @field_validator("question_type")
    @classmethod
    def _validate_type(cls, v: str):
        t = (v or "text").strip().lower()
        if t not in SURVEY_QUESTION_TYPES:
            raise ValueError(f"Invalid question_type '{v}'")
        return t

    @model_validator(mode="after")
    def _validate_shape(self):
        if self.question_type in CHOICE_TYPES:
            cleaned = [o.strip() for o in (self.options or []) if o and o.strip()]
            if len(cleaned) < 2:
                raise ValueError("Choice questions need at least two options")
            self.options = cleaned
        else:
            self.options = None
        if self.question_type == "rating":
            self.min_rating = 1 if self.min_rating is None else self.min_rating
            self.max_rating = 5 if self.max_rating is None else self.max_rating
            if self.min_rating >= self.max_rating:
                raise ValueError("min_rating must be lower than max_rating")
        else:
            self.min_rating = None
            self.max_rating = None
        return self


class SurveyAnswer(BaseModel):
    question_id: uuid.UUID
    answer_text: Optional[str] = None
    selected_options: Optional[List[str]] = None
    rating_value: Optional[int] = None


class SurveySubmission(BaseModel):
    course_id: Optional[uuid.UUID] = None
    survey_type: str = "general"
    answers: List[SurveyAnswer]

    @field_validator("survey_type")
    @classmethod
    def _validate_type(cls, v: str):
        t = (v or "general").strip().lower()
        if t not in SURVEY_TYPES:
            raise ValueError(f"Invalid survey_type '{v}'")
        return t
