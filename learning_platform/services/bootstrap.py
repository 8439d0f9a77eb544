"""首次启动的演示数据。

只在用户表为空时写入，重复调用不会产生任何改动。
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select

from learning_platform.db import SessionFactory, SessionLocal, session_scope
from learning_platform.models import QuestionType, User, UserRole
from learning_platform.services.assignments import AssignmentService
from learning_platform.services.courses import CourseService
from learning_platform.services.quizzes import QuizService
from learning_platform.services.users import UserService
from learning_platform.utils.timeutils import utcnow


logger = structlog.get_logger(__name__)


def seed_if_empty(session_factory: Optional[SessionFactory] = None) -> bool:
    """写入演示数据，返回是否实际写入。"""

    users = UserService()
    courses = CourseService()
    quizzes = QuizService()
    assignments = AssignmentService()

    with session_scope(session_factory or SessionLocal) as db:
        if db.scalar(select(func.count(User.id))):
            logger.info("seed_skipped", reason="store_not_empty")
            return False

        teacher = users.create_user(db, "Ada Teacher", "teacher@example.com", UserRole.TEACHER)
        users.create_user(db, "Sam Student", "student@example.com", UserRole.STUDENT)
        users.create_user(db, "Root Admin", "admin@example.com", UserRole.ADMIN)
        users.upsert_profile(db, teacher.id, bio="Backend engineer and instructor", city="Berlin")

        category = courses.create_category(db, "Programming", "Software development courses")
        today = date.today()
        course = courses.create_course(
            db,
            teacher.id,
            "Python Fundamentals",
            description="From variables to packages",
            category_id=category.id,
            duration="6 weeks",
            start_date=today,
            end_date=today + timedelta(weeks=6),
        )
        courses.add_tags(db, course.id, ["python", "beginner"])

        basics = courses.add_module(db, course.id, "Basics", 1)
        lesson = courses.add_lesson(
            db, basics.id, "Variables and types", 1, content="int, str, list, dict", duration_minutes=30
        )
        courses.add_lesson(db, basics.id, "Control flow", 2, duration_minutes=40)
        courses.add_module(db, course.id, "Functions", 2)

        assignments.create_assignment(
            db,
            lesson.id,
            "Type drills",
            due_date=utcnow() + timedelta(days=7),
            max_score=100,
        )

        quiz = quizzes.create_quiz(db, basics.id, "Basics check", passing_score=60, time_limit=15)
        question = quizzes.add_question(db, quiz.id, "Which type is immutable?", QuestionType.SINGLE_CHOICE)
        quizzes.add_option(db, question.id, "list", False)
        quizzes.add_option(db, question.id, "tuple", True)
        truth = quizzes.add_question(db, quiz.id, "Python is dynamically typed.", QuestionType.TRUE_FALSE)
        quizzes.add_option(db, truth.id, "True", True)
        quizzes.add_option(db, truth.id, "False", False)

    logger.info("seed_completed", course_id=course.id)
    return True
