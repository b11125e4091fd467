from typing import Optional
from pydantic import BaseModel, field_validator


class LessonProgressUpdate(BaseModel):
    progress_percent: int


class LessonTrackingUpdate(BaseModel):
    """Learner player heartbeat: any subset of the fields may be sent."""

    progress_percent: Optional[int] = None
    video_timestamp: Optional[int] = None
    time_spent_seconds: Optional[int] = None
    completed: Optional[bool] = None

    @field_validator("video_timestamp", "time_spent_seconds")
    @classmethod
    def _non_negative(cls, v: Optional[int]):
        if v is not None and v < 0:
            raise ValueError("must be >= 0")
        return v
