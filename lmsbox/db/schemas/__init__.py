"""
Domain-split Pydantic schemas.

Re-exports every request/response model so routers can use
`from lmsbox.db import schemas` and reference `schemas.CourseCreate` etc.
"""

from .users import UserBase, User, UserProfileUpdate
from .organizations import (
    OrganizationBase,
    Organization,
    OrganizationSettings,
    OrganizationSettingsUpdate,
    OrganizationMember,
)
from .tokens import TokenCreateRequest, TokenUpdateRequest, TokenResponse, TokenCreateResponse
from .auth import LoginLinkRequest, VerifyLoginLinkRequest, SessionTokenResponse
from .audits import AuditLogCreate, AuditLog
from .courses import (
    LessonPayload,
    CourseCreate,
    CourseUpdate,
    Lesson,
    Course,
    CourseSummary,
    PaginatedCourses,
)
from .quizzes import (
    QuizOptionPayload,
    QuizQuestionPayload,
    QuizCreate,
    QuizUpdate,
    QuizSubmission,
)
from .surveys import (
    SurveyCreate,
    SurveyUpdate,
    SurveyQuestionPayload,
    SurveyAnswer,
    SurveySubmission,
)
from .groups import LearningGroupCreate, LearningGroupUpdate, GroupMembersPayload, GroupCoursesPayload
from .pathways import PathwayCreate, PathwayUpdate, PathwayCoursePayload, PathwayEnrollmentPayload
from .progress import LessonProgressUpdate, LessonTrackingUpdate
from .reports import CustomReportRequest, CustomReportResponse

__all__ = [
    # Users
    "UserBase",
    "User",
    "UserProfileUpdate",
    # Orgs
    "OrganizationBase",
    "Organization",
    "OrganizationSettings",
    "OrganizationSettingsUpdate",
    "OrganizationMember",
    # Tokens / auth
    "TokenCreateRequest",
    "TokenUpdateRequest",
    "TokenResponse",
    "TokenCreateResponse",
    "LoginLinkRequest",
    "VerifyLoginLinkRequest",
    "SessionTokenResponse",
    # Audits
    "AuditLogCreate",
    "AuditLog",
    # Courses
    "LessonPayload",
    "CourseCreate",
    "CourseUpdate",
    "Lesson",
    "Course",
    "CourseSummary",
    "PaginatedCourses",
    # Quizzes
    "QuizOptionPayload",
    "QuizQuestionPayload",
    "QuizCreate",
    "QuizUpdate",
    "QuizSubmission",
    # Surveys
    "SurveyCreate",
    "SurveyUpdate",
    "SurveyQuestionPayload",
    "SurveyAnswer",
    "SurveySubmission",
    # Groups / pathways
    "LearningGroupCreate",
    "LearningGroupUpdate",
    "GroupMembersPayload",
    "GroupCoursesPayload",
    "PathwayCreate",
    "PathwayUpdate",
    "PathwayCoursePayload",
    "PathwayEnrollmentPayload",
    # Progress
    "LessonProgressUpdate",
    "LessonTrackingUpdate",
    # Reports
    "CustomReportRequest",
    "CustomReportResponse",
]
