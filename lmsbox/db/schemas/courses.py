import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, field_validator

LESSON_TYPES = ("content", "video", "quiz", "scorm", "document")
COURSE_STATUSES = ("draft", "published", "archived")


class LessonPayload(BaseModel):
    """Lesson as sent inside a course create/update payload.

    A lesson carrying ``id`` updates the existing lesson; one without is added.
    """

    id: Optional[uuid.UUID] = None
    title: str
    content: Optional[str] = None
    ordinal: Optional[int] = None
    lesson_type: str = "content"
    quiz_id: Optional[uuid.UUID] = None
    video_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    scorm_url: Optional[str] = None
    scorm_entry_url: Optional[str] = None
    document_url: Optional[str] = None
    is_optional: bool = False

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("Lesson title is required")
        return s

    @field_validator("lesson_type")
    @classmethod
    def _validate_type(cls, v: str):
        t = (v or "content").strip().lower()
        if t not in LESSON_TYPES:
            raise ValueError(f"Invalid lesson_type '{v}'. Allowed: {list(LESSON_TYPES)}")
        return t

    @field_validator("video_duration_seconds")
    @classmethod
    def _validate_duration(cls, v: Optional[int]):
        if v is not None and v < 0:
            raise ValueError("video_duration_seconds must be >= 0")
        return v


class CourseBase(BaseModel):
    description: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    banner_url: Optional[str] = None
    certificate_enabled: Optional[bool] = None
    pre_course_survey_id: Optional[uuid.UUID] = None
    post_course_survey_id: Optional[uuid.UUID] = None
    is_pre_survey_mandatory: Optional[bool] = None
    is_post_survey_mandatory: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: Optional[List[str]]):
        if v is None:
            return v
        seen = []
        for tag in v:
            t = str(tag).strip()
            if t and t not in seen:
                seen.append(t)
        return seen


class CourseCreate(CourseBase):
    title: str
    status: str = "draft"
    organization_id: Optional[uuid.UUID] = None
    lessons: Optional[List[LessonPayload]] = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("Course title is required")
        return s

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str):
        s = (v or "draft").strip().lower()
        if s not in COURSE_STATUSES:
            raise ValueError(f"Invalid status '{v}'")
        return s


class CourseUpdate(CourseBase):
    title: Optional[str] = None
    status: Optional[str] = None
    lessons: Optional[List[LessonPayload]] = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: Optional[str]):
        if v is None:
            return v
        s = v.strip()
        if not s:
            raise ValueError("Course title cannot be empty")
        return s

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: Optional[str]):
        if v is None:
            return v
        s = v.strip().lower()
        if s not in COURSE_STATUSES:
            raise ValueError(f"Invalid status '{v}'")
        return s


class Lesson(BaseModel):
    id: uuid.UUID
    course_id: uuid.UUID
    title: str
    content: Optional[str] = None
    ordinal: int
    lesson_type: str
    quiz_id: Optional[uuid.UUID] = None
    video_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    scorm_url: Optional[str] = None
    scorm_entry_url: Optional[str] = None
    document_url: Optional[str] = None
    is_optional: bool
    model_config = ConfigDict(from_attributes=True)


class Course(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    status: str
    certificate_enabled: bool
    banner_url: Optional[str] = None
    pre_course_survey_id: Optional[uuid.UUID] = None
    post_course_survey_id: Optional[uuid.UUID] = None
    is_pre_survey_mandatory: bool
    is_post_survey_mandatory: bool
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    lessons: List[Lesson] = []
    model_config = ConfigDict(from_attributes=True)


class CourseSummary(BaseModel):
    id: uuid.UUID
    title: str
    short_description: Optional[str] = None
    category: Optional[str] = None
    status: str
    lesson_count: int
    enrollment_count: int
    created_at: datetime


class PaginatedCourses(BaseModel):
    items: List[CourseSummary]
    total: int
    page: int
    page_size: int
