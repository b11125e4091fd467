import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, Text, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class LearningPathway(Base):
    __tablename__ = 'learning_pathways'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(String(500), nullable=True)
    category = Column(String(100), nullable=True)
    difficulty_level = Column(String(20), nullable=False, default='beginner')  # beginner|intermediate|advanced
    estimated_duration_hours = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    courses = relationship(
        "PathwayCourse",
        back_populates="pathway",
        cascade="all, delete-orphan",
        order_by="PathwayCourse.sequence_order",
    )


class PathwayCourse(Base):
    __tablename__ = 'pathway_courses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pathway_id = Column(UUID(as_uuid=True), ForeignKey('learning_pathways.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='CASCADE'), nullable=False)
    sequence_order = Column(Integer, nullable=False, default=0)
    is_mandatory = Column(Boolean, nullable=False, default=True)
    # list of course ids (as strings) that must be completed first
    prerequisite_course_ids = Column(JSONB, nullable=False, default=list)
    added_at = Column(DateTime(timezone=True), default=now_utc)

    pathway = relationship("LearningPathway", back_populates="courses")

    __table_args__ = (
        UniqueConstraint('pathway_id', 'course_id', name='uq_pathway_courses_pathway_course'),
    )


class LearnerPathwayProgress(Base):
    __tablename__ = 'learner_pathway_progress'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    pathway_id = Column(UUID(as_uuid=True), ForeignKey('learning_pathways.id', ondelete='CASCADE'), nullable=False)
    completed_courses = Column(Integer, nullable=False, default=0)
    total_courses = Column(Integer, nullable=False, default=0)
    progress_percent = Column(Integer, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    enrolled_at = Column(DateTime(timezone=True), default=now_utc)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    current_course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'pathway_id', name='uq_learner_pathway_progress_user_pathway'),
        Index('idx_learner_pathway_progress_pathway', 'pathway_id'),
    )
