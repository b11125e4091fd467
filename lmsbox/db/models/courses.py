import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Text, Integer
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Course(Base):
    __tablename__ = 'courses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(String(500), nullable=True)
    category = Column(String(100), nullable=True)
    tags = Column(JSONB, nullable=False, default=list)
    status = Column(String(20), nullable=False, default='draft')  # draft|published|archived
    certificate_enabled = Column(Boolean, nullable=False, default=True)
    banner_url = Column(Text, nullable=True)

    # Optional surveys bracketing the course
    pre_course_survey_id = Column(UUID(as_uuid=True), ForeignKey('surveys.id', ondelete='SET NULL'), nullable=True)
    post_course_survey_id = Column(UUID(as_uuid=True), ForeignKey('surveys.id', ondelete='SET NULL'), nullable=True)
    is_pre_survey_mandatory = Column(Boolean, nullable=False, default=False)
    is_post_survey_mandatory = Column(Boolean, nullable=False, default=False)

    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    lessons = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Lesson.ordinal",
    )

    __table_args__ = (
        Index('idx_courses_org_status', 'organization_id', 'status'),
        CheckConstraint("status in ('draft','published','archived')", name='ck_courses_status'),
    )


class Lesson(Base):
    __tablename__ = 'lessons'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    ordinal = Column(Integer, nullable=False, default=0)
    lesson_type = Column(String(20), nullable=False, default='content')  # content|video|quiz|scorm|document
    quiz_id = Column(UUID(as_uuid=True), ForeignKey('quizzes.id', ondelete='SET NULL'), nullable=True)
    video_url = Column(Text, nullable=True)
    video_duration_seconds = Column(Integer, nullable=True)
    scorm_url = Column(Text, nullable=True)
    scorm_entry_url = Column(Text, nullable=True)
    document_url = Column(Text, nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    course = relationship("Course", back_populates="lessons")

    __table_args__ = (
        Index('idx_lessons_course_ordinal', 'course_id', 'ordinal'),
        CheckConstraint(
            "lesson_type in ('content','video','quiz','scorm','document')",
            name='ck_lessons_type',
        ),
    )
