"""
Domain-split SQLAlchemy models.

Exposes `Base`, the timestamp helpers and every ORM class so callers can
use `from lmsbox.db import models` and reference `models.Course` etc.
"""

from .base import Base, now_utc, ensure_aware  # re-export

# Identity and tenancy
from .users import User
from .organizations import Organization, OrganizationMembership
from .tokens import PersonalAccessToken, LoginLinkToken
from .audit import AuditLog

# Learning content
from .surveys import Survey, SurveyQuestion, SurveyResponse, SurveyQuestionResponse
from .courses import Course, Lesson
from .quizzes import Quiz, QuizQuestion, QuizOption, QuizAttempt
from .groups import LearningGroup, LearnerGroup, GroupCourse
from .pathways import LearningPathway, PathwayCourse, LearnerPathwayProgress
from .progress import LearnerProgress

__all__ = [
    # base
    "Base",
    "now_utc",
    "ensure_aware",
    # users/orgs
    "User",
    "Organization",
    "OrganizationMembership",
    # auth
    "PersonalAccessToken",
    "LoginLinkToken",
    # audit
    "AuditLog",
    # surveys
    "Survey",
    "SurveyQuestion",
    "SurveyResponse",
    "SurveyQuestionResponse",
    # courses
    "Course",
    "Lesson",
    # quizzes
    "Quiz",
    "QuizQuestion",
    "QuizOption",
    "QuizAttempt",
    # groups/pathways
    "LearningGroup",
    "LearnerGroup",
    "GroupCourse",
    "LearningPathway",
    "PathwayCourse",
    "LearnerPathwayProgress",
    # progress
    "LearnerProgress",
]
