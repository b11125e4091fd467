import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Text, Integer
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Survey(Base):
    __tablename__ = 'surveys'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='draft')  # draft|published
    is_active = Column(Boolean, nullable=False, default=True)
    # Soft delete keeps historical responses reachable
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    questions = relationship(
        "SurveyQuestion",
        back_populates="survey",
        cascade="all, delete-orphan",
        order_by="SurveyQuestion.order_index",
    )

    __table_args__ = (
        Index('idx_surveys_org', 'organization_id'),
        CheckConstraint("status in ('draft','published')", name='ck_surveys_status'),
    )


class SurveyQuestion(Base):
    __tablename__ = 'survey_questions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    survey_id = Column(UUID(as_uuid=True), ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False)
    question_text = Column(Text, nullable=False)
    # single_choice|multiple_choice|text|rating|yes_no
    question_type = Column(String(20), nullable=False, default='text')
    options = Column(JSONB, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    is_required = Column(Boolean, nullable=False, default=True)
    min_rating = Column(Integer, nullable=True)
    max_rating = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    survey = relationship("Survey", back_populates="questions")


class SurveyResponse(Base):
    __tablename__ = 'survey_responses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    survey_id = Column(UUID(as_uuid=True), ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)
    survey_type = Column(String(20), nullable=False, default='general')  # pre_course|post_course|general
    submitted_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    answers = relationship(
        "SurveyQuestionResponse",
        back_populates="response",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_survey_responses_survey', 'survey_id', 'submitted_at'),
    )


class SurveyQuestionResponse(Base):
    __tablename__ = 'survey_question_responses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    response_id = Column(UUID(as_uuid=True), ForeignKey('survey_responses.id', ondelete='CASCADE'), nullable=False)
    question_id = Column(UUID(as_uuid=True), ForeignKey('survey_questions.id', ondelete='CASCADE'), nullable=False)
    answer_text = Column(Text, nullable=True)
    selected_options = Column(JSONB, nullable=True)
    rating_value = Column(Integer, nullable=True)
    answered_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    response = relationship("SurveyResponse", back_populates="answers")
