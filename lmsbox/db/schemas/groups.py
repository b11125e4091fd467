import uuid
from typing import List, Optional
from pydantic import BaseModel, field_validator


class LearningGroupCreate(BaseModel):
    name: str
    description: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str):
        s = (v or "").strip()
        if not s or len(s) > 200:
            raise ValueError("Group name must be 1..200 characters")
        return s


class LearningGroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class GroupMembersPayload(BaseModel):
    user_ids: List[uuid.UUID]


class GroupCoursesPayload(BaseModel):
    course_ids: List[uuid.UUID]
