import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Text, Integer
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Quiz(Base):
    __tablename__ = 'quizzes'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    passing_score = Column(Integer, nullable=False, default=70)
    is_timed = Column(Boolean, nullable=False, default=False)
    time_limit_minutes = Column(Integer, nullable=False, default=30)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    shuffle_answers = Column(Boolean, nullable=False, default=False)
    show_results = Column(Boolean, nullable=False, default=True)
    allow_retake = Column(Boolean, nullable=False, default=True)
    max_attempts = Column(Integer, nullable=False, default=3)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.ordinal",
    )


class QuizQuestion(Base):
    __tablename__ = 'quiz_questions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(UUID(as_uuid=True), ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False)
    question = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default='mc_single')  # mc_single|mc_multi|true_false
    points = Column(Integer, nullable=False, default=1)
    explanation = Column(Text, nullable=True)
    ordinal = Column(Integer, nullable=False, default=0)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuizOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuizOption.ordinal",
    )

    __table_args__ = (
        CheckConstraint(
            "question_type in ('mc_single','mc_multi','true_false')",
            name='ck_quiz_questions_type',
        ),
    )


class QuizOption(Base):
    __tablename__ = 'quiz_options'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(UUID(as_uuid=True), ForeignKey('quiz_questions.id', ondelete='CASCADE'), nullable=False)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    ordinal = Column(Integer, nullable=False, default=0)

    question = relationship("QuizQuestion", back_populates="options")


class QuizAttempt(Base):
    __tablename__ = 'quiz_attempts'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(UUID(as_uuid=True), ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    lesson_id = Column(UUID(as_uuid=True), ForeignKey('lessons.id', ondelete='SET NULL'), nullable=True)
    score = Column(Integer, nullable=False, default=0)
    earned_points = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    passed = Column(Boolean, nullable=False, default=False)
    # {question_id: [option_id, ...]} as submitted
    answers = Column(JSONB, nullable=False, default=dict)
    submitted_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_quiz_attempts_quiz_user', 'quiz_id', 'user_id'),
    )
