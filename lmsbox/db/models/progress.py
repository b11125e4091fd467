import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, Integer
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, now_utc


class LearnerProgress(Base):
    """Per-user progress; ``lesson_id`` is NULL for the course-level row."""

    __tablename__ = 'learner_progress'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='CASCADE'), nullable=False)
    lesson_id = Column(UUID(as_uuid=True), ForeignKey('lessons.id', ondelete='CASCADE'), nullable=True)
    progress_percent = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    # Media tracking
    video_timestamp = Column(Integer, nullable=True)
    total_time_spent_seconds = Column(Integer, nullable=False, default=0)

    # Certificate tracking (course-level rows only)
    certificate_id = Column(String(64), nullable=True, unique=True)
    certificate_issued_at = Column(DateTime(timezone=True), nullable=True)
    certificate_issued_by = Column(String(120), nullable=True)

    # Survey tracking (course-level rows only)
    pre_survey_completed = Column(Boolean, nullable=False, default=False)
    pre_survey_completed_at = Column(DateTime(timezone=True), nullable=True)
    pre_survey_response_id = Column(UUID(as_uuid=True), ForeignKey('survey_responses.id', ondelete='SET NULL'), nullable=True)
    post_survey_completed = Column(Boolean, nullable=False, default=False)
    post_survey_completed_at = Column(DateTime(timezone=True), nullable=True)
    post_survey_response_id = Column(UUID(as_uuid=True), ForeignKey('survey_responses.id', ondelete='SET NULL'), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_learner_progress_user_course', 'user_id', 'course_id'),
        Index('idx_learner_progress_lesson', 'lesson_id'),
    )
