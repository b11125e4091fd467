#!/usr/bin/env python3
"""
Seed a demo organization.

Creates an organization with an owner and a learner, one published course
with three lessons (content, video and a quiz lesson), a quiz for the quiz
lesson and a learning group that assigns the course to the learner.

Reads the database URL the same way the service does (DATABASE_URL or the
POSTGRES_* variables).

Usage:
  python scripts/seed_demo_data.py --org-name "Acme Academy" \
      --owner-email owner@example.com --learner-email learner@example.com
"""
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import suppress

from lmsbox.db import models, database


logger = logging.getLogger("lmsbox.scripts.seed_demo_data")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a demo organization with a course, quiz and group")
    parser.add_argument("--org-name", default="Demo Academy", help="Organization name (default: Demo Academy)")
    parser.add_argument("--owner-email", default="owner@example.com", help="Email of the organization owner")
    parser.add_argument("--learner-email", default="learner@example.com", help="Email of the demo learner")
    return parser.parse_args(argv)


def _get_or_create_user(session, email: str, first_name: str) -> models.User:
    email = email.strip().lower()
    user = session.query(models.User).filter(models.User.email == email).first()
    if user:
        return user
    user = models.User(email=email, first_name=first_name, display_name=first_name)
    session.add(user)
    session.flush()
    return user


def _slugify(name: str) -> str:
    return "-".join(part for part in "".join(c.lower() if c.isalnum() else " " for c in name).split())


def seed(org_name: str, owner_email: str, learner_email: str) -> int:
    session = database.SessionLocal()
    try:
        if session.query(models.Organization).filter(models.Organization.name == org_name).first():
            print(f"Organization '{org_name}' already exists; nothing to do.")
            logger.info("Seed skipped; organization exists", extra={"organization": org_name})
            return 0

        owner = _get_or_create_user(session, owner_email, "Owner")
        learner = _get_or_create_user(session, learner_email, "Learner")

        org = models.Organization(name=org_name, slug=_slugify(org_name), created_by=owner.id)
        session.add(org)
        session.flush()
        session.add_all([
            models.OrganizationMembership(
                organization_id=org.id, user_id=owner.id, role="owner", can_read=True, can_write=True,
            ),
            models.OrganizationMembership(
                organization_id=org.id, user_id=learner.id, role="learner", can_read=True, can_write=False,
            ),
        ])

        course = models.Course(
            organization_id=org.id,
            title="Getting Started",
            short_description="A short tour of the platform",
            category="Onboarding",
            tags=["onboarding"],
            status="published",
            created_by=owner.id,
        )
        session.add(course)
        session.flush()

        quiz = models.Quiz(
            organization_id=org.id,
            course_id=course.id,
            title="Getting Started Check",
            passing_score=50,
            created_by=owner.id,
        )
        question = models.QuizQuestion(question="Courses are grouped into pathways.", question_type="true_false", ordinal=0)
        question.options = [
            models.QuizOption(text="True", is_correct=True, ordinal=0),
            models.QuizOption(text="False", is_correct=False, ordinal=1),
        ]
        quiz.questions = [question]
        session.add(quiz)
        session.flush()

        session.add_all([
            models.Lesson(course_id=course.id, title="Welcome", content="Welcome aboard.", ordinal=0, created_by=owner.id),
            models.Lesson(
                course_id=course.id,
                title="Platform Tour",
                lesson_type="video",
                video_url="https://example.com/tour.mp4",
                video_duration_seconds=300,
                ordinal=1,
                created_by=owner.id,
            ),
            models.Lesson(
                course_id=course.id, title="Knowledge Check", lesson_type="quiz", quiz_id=quiz.id, ordinal=2,
                created_by=owner.id,
            ),
        ])

        group = models.LearningGroup(organization_id=org.id, name="New Starters", created_by=owner.id)
        session.add(group)
        session.flush()
        session.add(models.LearnerGroup(user_id=learner.id, group_id=group.id))
        session.add(models.GroupCourse(group_id=group.id, course_id=course.id))

        session.commit()
        print(f"Seeded organization '{org_name}' ({org.id}) with course '{course.title}'.")
        logger.info(
            "Demo data seeded",
            extra={"organization_id": str(org.id), "course_id": str(course.id), "group_id": str(group.id)},
        )
        return 0
    except Exception:
        session.rollback()
        logger.exception("Seeding demo data failed")
        return 1
    finally:
        with suppress(Exception):
            session.close()


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    return seed(args.org_name, args.owner_email, args.learner_email)


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
