import uuid
from typing import List, Optional
from pydantic import BaseModel, field_validator

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


def _validate_difficulty(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    d = v.strip().lower()
    if d not in DIFFICULTY_LEVELS:
        raise ValueError(f"Invalid difficulty_level '{v}'")
    return d


class PathwayCreate(BaseModel):
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: str = "beginner"
    estimated_duration_hours: int = 0
    is_active: bool = True
    organization_id: Optional[uuid.UUID] = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str):
        s = (v or "").strip()
        if not s:
            raise ValueError("Pathway title is required")
        return s

    @field_validator("difficulty_level")
    @classmethod
    def _check_difficulty(cls, v):
        return _validate_difficulty(v)


class PathwayUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[str] = None
    estimated_duration_hours: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("difficulty_level")
    @classmethod
    def _check_difficulty(cls, v):
        return _validate_difficulty(v)


class PathwayCoursePayload(BaseModel):
    course_id: uuid.UUID
    sequence_order: Optional[int] = None
    is_mandatory: bool = True
    prerequisite_course_ids: List[uuid.UUID] = []


class PathwayEnrollmentPayload(BaseModel):
    user_ids: List[uuid.UUID]
