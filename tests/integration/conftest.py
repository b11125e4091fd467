import pytest
from sqlalchemy.orm import Session

from lmsbox.db import models


@pytest.fixture
def user_factory(db_session: Session):
    def _create(email: str, is_superadmin: bool = False, first_name: str = None, active_status: str = "active"):
        user = models.User(
            email=email,
            display_name=email.split("@")[0],
            first_name=first_name,
            is_superadmin=is_superadmin,
            active_status=active_status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def organization_factory(db_session: Session):
    def _create(name: str, **fields):
        org = models.Organization(name=name, slug=name.lower().replace(" ", "-"), **fields)
        db_session.add(org)
        db_session.commit()
        db_session.refresh(org)
        return org
    return _create


@pytest.fixture
def membership_factory(db_session: Session):
    def _create(org, user, role: str = "owner"):
        can_write = role != "learner"
        m = models.OrganizationMembership(
            organization_id=org.id, user_id=user.id, role=role, can_read=True, can_write=can_write,
        )
        db_session.add(m)
        db_session.commit()
        return m
    return _create


@pytest.fixture
def course_factory(db_session: Session):
    def _create(org, title: str = "Safety Basics", status: str = "published", lessons=None, **fields):
        course = models.Course(organization_id=org.id, title=title, status=status, tags=[], **fields)
        db_session.add(course)
        db_session.flush()
        for idx, lesson_fields in enumerate(lessons or [{"title": "Intro"}]):
            lesson_fields = dict(lesson_fields)
            lesson_fields.setdefault("ordinal", idx)
            db_session.add(models.Lesson(course_id=course.id, **lesson_fields))
        db_session.commit()
        db_session.refresh(course)
        return course
    return _create


@pytest.fixture
def assign_course(db_session: Session):
    """Give ``user`` access to ``course`` through a fresh learning group."""
    def _assign(course, *users, name: str = None):
        group = models.LearningGroup(organization_id=course.organization_id, name=name or f"Group {course.title}")
        db_session.add(group)
        db_session.flush()
        for user in users:
            db_session.add(models.LearnerGroup(user_id=user.id, group_id=group.id))
        db_session.add(models.GroupCourse(group_id=group.id, course_id=course.id))
        db_session.commit()
        return group
    return _assign


@pytest.fixture
def org_owner_context(user_factory, organization_factory, membership_factory):
    user = user_factory("owner@example.com", first_name="Olive")
    org = organization_factory("Acme Academy")
    membership_factory(org, user, role="owner")
    return user, org


@pytest.fixture
def learner_context(org_owner_context, user_factory, membership_factory):
    _owner, org = org_owner_context
    user = user_factory("learner@example.com", first_name="Lee")
    membership_factory(org, user, role="learner")
    return user, org


@pytest.fixture
def instructor_context(org_owner_context, user_factory, membership_factory):
    _owner, org = org_owner_context
    user = user_factory("instructor@example.com")
    membership_factory(org, user, role="instructor")
    return user, org
