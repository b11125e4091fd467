import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, now_utc


class LearningGroup(Base):
    __tablename__ = 'learning_groups'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_learning_groups_org_name'),
    )


class LearnerGroup(Base):
    __tablename__ = 'learner_groups'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    group_id = Column(UUID(as_uuid=True), ForeignKey('learning_groups.id', ondelete='CASCADE'), nullable=False)
    joined_at = Column(DateTime(timezone=True), default=now_utc)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'group_id', name='uq_learner_groups_user_group'),
        Index('idx_learner_groups_user', 'user_id'),
    )


class GroupCourse(Base):
    __tablename__ = 'group_courses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(UUID(as_uuid=True), ForeignKey('learning_groups.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='CASCADE'), nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        UniqueConstraint('group_id', 'course_id', name='uq_group_courses_group_course'),
    )
