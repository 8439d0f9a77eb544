"""目录/学习进度服务门面。

外部调用方（HTTP 控制器、脚本）只通过这里访问核心能力。每个写操作独占一个事务，
不存在跨门面操作的事务；读取走 ``FetchExecutor`` 的单事务加载。
返回的实体均已脱离会话：已加载的列可读，未加载的关系读取即报错。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar

import structlog
from sqlalchemy.orm import Session

from learning_platform.config import Settings, get_settings
from learning_platform.db import SessionFactory, SessionLocal, session_scope
from learning_platform.errors import NotFoundError
from learning_platform.hydration import FetchExecutor, FetchResult, to_record, to_records
from learning_platform.models import (
    AnswerOption,
    Assignment,
    Category,
    Course,
    CourseReview,
    Enrollment,
    EnrollmentStatus,
    Lesson,
    Module,
    Profile,
    Question,
    QuestionType,
    Quiz,
    QuizSubmission,
    Submission,
    Tag,
    User,
    UserRole,
)
from learning_platform.schemas import parse_answer_map
from learning_platform.services.assignments import AssignmentService
from learning_platform.services.courses import CourseService
from learning_platform.services.enrollment import EnrollmentService
from learning_platform.services.quizzes import QuizService
from learning_platform.services.reviews import ReviewService
from learning_platform.services.scoring import QuizScore, passed
from learning_platform.services.users import UserService


logger = structlog.get_logger(__name__)

T = TypeVar("T")

# 形状名 -> 根实体名称（用于 NotFound 信息）
_ROOT_NAMES = {
    "course": "Course",
    "quiz": "Quiz",
    "user": "User",
    "lesson": "Lesson",
    "assignment": "Assignment",
    "enrollment": "Enrollment",
}


def _not_found(shape_name: str, root_id: int) -> NotFoundError:
    prefix = shape_name.split("-", 1)[0]
    return NotFoundError(_ROOT_NAMES.get(prefix, prefix.title()), root_id)


@dataclass(frozen=True)
class QuizAttempt:
    """一次测验作答的结果。"""

    submission: QuizSubmission
    result: QuizScore
    passed: bool


class CatalogFacade:
    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        executor: Optional[FetchExecutor] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory or SessionLocal
        self.executor = executor or FetchExecutor(
            self._session_factory, isolation_level=self.settings.fetch_isolation_level
        )
        self.users = UserService()
        self.courses = CourseService()
        self.enrollments = EnrollmentService()
        self.quizzes = QuizService()
        self.assignments = AssignmentService()
        self.reviews = ReviewService()

    def _write(self, work: Callable[[Session], T], cancel: Optional[threading.Event]) -> T:
        with session_scope(self._session_factory, cancel) as db:
            return work(db)

    def _read(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as db:
            return work(db)

    # === 加载 ===

    def fetch(
        self,
        shape_name: str,
        root_ids: Optional[Iterable[int]] = None,
        criteria: Optional[Mapping[str, Any]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> FetchResult:
        return self.executor.fetch(
            shape_name, root_ids=root_ids, criteria=criteria, cancel=cancel
        )

    def fetch_records(
        self,
        shape_name: str,
        root_ids: Optional[Iterable[int]] = None,
        criteria: Optional[Mapping[str, Any]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        result = self.fetch(shape_name, root_ids=root_ids, criteria=criteria, cancel=cancel)
        return to_records(result.roots, result.descriptor.resolved)

    def load_one(
        self, shape_name: str, root_id: int, cancel: Optional[threading.Event] = None
    ) -> Any:
        """按形状加载单个根实体，不存在时抛出 ``NotFoundError``。"""

        root = self.fetch(shape_name, root_ids=[root_id], cancel=cancel).first()
        if root is None:
            raise _not_found(shape_name, root_id)
        return root

    def load_record(
        self, shape_name: str, root_id: int, cancel: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        result = self.fetch(shape_name, root_ids=[root_id], cancel=cancel)
        if not result:
            raise _not_found(shape_name, root_id)
        return to_record(result.first(), result.descriptor.resolved)

    def load_full_course(
        self, course_id: int, cancel: Optional[threading.Event] = None
    ) -> Course:
        return self.load_one("course-full", course_id, cancel=cancel)

    def load_full_quiz(self, quiz_id: int, cancel: Optional[threading.Event] = None) -> Quiz:
        return self.load_one("quiz-full", quiz_id, cancel=cancel)

    # === 用户 ===

    def create_user(
        self,
        name: str,
        email: str,
        role: UserRole,
        phone_number: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> User:
        return self._write(
            lambda db: self.users.create_user(db, name, email, role, phone_number), cancel
        )

    def upsert_profile(
        self, user_id: int, cancel: Optional[threading.Event] = None, **fields: Optional[str]
    ) -> Profile:
        return self._write(lambda db: self.users.upsert_profile(db, user_id, **fields), cancel)

    def delete_user(self, user_id: int, cancel: Optional[threading.Event] = None) -> None:
        self._write(lambda db: self.users.delete_user(db, user_id), cancel)

    def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        return self._read(lambda db: self.users.list_users(db, role))

    def update_user(
        self, user_id: int, cancel: Optional[threading.Event] = None, **fields: Any
    ) -> User:
        return self._write(lambda db: self.users.update_user(db, user_id, **fields), cancel)

    def find_user_by_email(self, email: str) -> User:
        """按邮箱（不区分大小写）查找用户，不存在时抛出 ``NotFoundError``。"""

        user = self._read(lambda db: self.users.find_by_email(db, email))
        if user is None:
            raise NotFoundError("User", email)
        return user

    def search_users(self, name_contains: str) -> List[User]:
        return self._read(lambda db: self.users.search_users(db, name_contains))

    # === 课程结构 ===

    def create_category(
        self,
        name: str,
        description: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Category:
        return self._write(
            lambda db: self.courses.create_category(db, name, description), cancel
        )

    def create_course(
        self,
        teacher_id: int,
        title: str,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        duration: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Course:
        return self._write(
            lambda db: self.courses.create_course(
                db,
                teacher_id,
                title,
                description=description,
                category_id=category_id,
                duration=duration,
                start_date=start_date,
                end_date=end_date,
            ),
            cancel,
        )

    def update_course(
        self, course_id: int, cancel: Optional[threading.Event] = None, **fields: Any
    ) -> Course:
        return self._write(
            lambda db: self.courses.update_course(db, course_id, **fields), cancel
        )

    def add_module(
        self,
        course_id: int,
        title: str,
        order_index: int,
        description: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Module:
        return self._write(
            lambda db: self.courses.add_module(db, course_id, title, order_index, description),
            cancel,
        )

    def add_lesson(
        self,
        module_id: int,
        title: str,
        order_index: int,
        content: Optional[str] = None,
        video_url: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Lesson:
        return self._write(
            lambda db: self.courses.add_lesson(
                db,
                module_id,
                title,
                order_index,
                content=content,
                video_url=video_url,
                duration_minutes=duration_minutes,
            ),
            cancel,
        )

    def remove_module(self, module_id: int, cancel: Optional[threading.Event] = None) -> None:
        self._write(lambda db: self.courses.remove_module(db, module_id), cancel)

    def delete_course(self, course_id: int, cancel: Optional[threading.Event] = None) -> None:
        self._write(lambda db: self.courses.delete_course(db, course_id), cancel)

    def add_tags(
        self, course_id: int, names: Iterable[str], cancel: Optional[threading.Event] = None
    ) -> List[Tag]:
        names = list(names)
        return self._write(lambda db: self.courses.add_tags(db, course_id, names), cancel)

    def remove_tag(
        self, course_id: int, tag_id: int, cancel: Optional[threading.Event] = None
    ) -> None:
        self._write(lambda db: self.courses.remove_tag(db, course_id, tag_id), cancel)

    def list_courses(
        self,
        teacher_id: Optional[int] = None,
        category_id: Optional[int] = None,
        tag_name: Optional[str] = None,
        title_contains: Optional[str] = None,
    ) -> List[Course]:
        return self._read(
            lambda db: self.courses.list_courses(
                db,
                teacher_id=teacher_id,
                category_id=category_id,
                tag_name=tag_name,
                title_contains=title_contains,
            )
        )

    def popular_courses(self, limit: Optional[int] = None) -> List[Tuple[Course, int]]:
        return self._read(lambda db: self.courses.popular_courses(db, limit))

    def active_enrollment_count(self, course_id: int) -> int:
        return self._read(lambda db: self.courses.count_active_enrollments(db, course_id))

    # === 选课 ===

    def enroll(
        self, student_id: int, course_id: int, cancel: Optional[threading.Event] = None
    ) -> Enrollment:
        return self._write(lambda db: self.enrollments.enroll(db, student_id, course_id), cancel)

    def update_progress(
        self, enrollment_id: int, percentage: int, cancel: Optional[threading.Event] = None
    ) -> Enrollment:
        return self._write(
            lambda db: self.enrollments.update_progress(db, enrollment_id, percentage), cancel
        )

    def complete(
        self,
        enrollment_id: int,
        final_grade: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Enrollment:
        return self._write(
            lambda db: self.enrollments.complete(db, enrollment_id, final_grade), cancel
        )

    def unenroll(
        self, enrollment_id: int, cancel: Optional[threading.Event] = None
    ) -> Enrollment:
        return self._write(lambda db: self.enrollments.unenroll(db, enrollment_id), cancel)

    def suspend(self, enrollment_id: int, cancel: Optional[threading.Event] = None) -> Enrollment:
        return self._write(lambda db: self.enrollments.suspend(db, enrollment_id), cancel)

    def resume(self, enrollment_id: int, cancel: Optional[threading.Event] = None) -> Enrollment:
        return self._write(lambda db: self.enrollments.resume(db, enrollment_id), cancel)

    def list_enrollments(
        self,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        status: Optional[EnrollmentStatus] = None,
    ) -> List[Enrollment]:
        return self._read(
            lambda db: self.enrollments.list_enrollments(db, student_id, course_id, status)
        )

    def count_enrollments(
        self,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        status: Optional[EnrollmentStatus] = None,
    ) -> int:
        return self._read(
            lambda db: self.enrollments.count(db, student_id, course_id, status)
        )

    # === 测验 ===

    def create_quiz(
        self,
        module_id: int,
        title: str,
        passing_score: Optional[int] = None,
        description: Optional[str] = None,
        time_limit: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Quiz:
        return self._write(
            lambda db: self.quizzes.create_quiz(
                db,
                module_id,
                title,
                passing_score=passing_score,
                description=description,
                time_limit=time_limit,
            ),
            cancel,
        )

    def get_quiz_by_module(self, module_id: int) -> Quiz:
        return self._read(lambda db: self.quizzes.get_by_module(db, module_id))

    def add_question(
        self,
        quiz_id: int,
        text: str,
        question_type: QuestionType,
        points: int = 1,
        order_index: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Question:
        return self._write(
            lambda db: self.quizzes.add_question(
                db, quiz_id, text, question_type, points=points, order_index=order_index
            ),
            cancel,
        )

    def add_option(
        self,
        question_id: int,
        text: str,
        is_correct: bool,
        order_index: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AnswerOption:
        return self._write(
            lambda db: self.quizzes.add_option(
                db, question_id, text, is_correct, order_index=order_index
            ),
            cancel,
        )

    def take_quiz(
        self,
        quiz_id: int,
        student_id: int,
        answers: Any,
        time_spent_minutes: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> QuizAttempt:
        """作答测验：先在只读事务内加载完整测验，再在写事务内计分入库。"""

        answer_map = parse_answer_map(answers)
        quiz = self.load_full_quiz(quiz_id, cancel=cancel)

        def work(db: Session) -> QuizAttempt:
            submission, result = self.quizzes.record_attempt(
                db, quiz, student_id, answer_map, time_spent_minutes
            )
            return QuizAttempt(submission, result, passed(quiz, submission))

        attempt = self._write(work, cancel)
        logger.info(
            "quiz_taken",
            quiz_id=quiz_id,
            student_id=student_id,
            score=attempt.result.score,
            passed=attempt.passed,
        )
        return attempt

    def did_student_pass(self, quiz_id: int, student_id: int) -> bool:
        return self._read(
            lambda db: self.quizzes.did_student_pass(db, quiz_id, student_id)
        )

    def quiz_average_score(self, quiz_id: int) -> Optional[float]:
        return self._read(lambda db: self.quizzes.quiz_average_score(db, quiz_id))

    def student_quiz_average(self, student_id: int) -> Optional[float]:
        return self._read(
            lambda db: self.quizzes.student_average_score(db, student_id)
        )

    def quiz_submissions_by_student(self, student_id: int) -> List[QuizSubmission]:
        return self._read(
            lambda db: self.quizzes.submissions_by_student(db, student_id)
        )

    # === 作业 ===

    def create_assignment(
        self,
        lesson_id: int,
        title: str,
        due_date: Optional[datetime] = None,
        max_score: Optional[int] = None,
        description: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Assignment:
        return self._write(
            lambda db: self.assignments.create_assignment(
                db,
                lesson_id,
                title,
                due_date=due_date,
                max_score=max_score,
                description=description,
            ),
            cancel,
        )

    def submit_assignment(
        self,
        assignment_id: int,
        student_id: int,
        content: Optional[str],
        cancel: Optional[threading.Event] = None,
    ) -> Submission:
        return self._write(
            lambda db: self.assignments.submit(db, assignment_id, student_id, content), cancel
        )

    def grade_submission(
        self,
        submission_id: int,
        score: int,
        feedback: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Submission:
        return self._write(
            lambda db: self.assignments.grade(db, submission_id, score, feedback), cancel
        )

    def ungraded_submissions(self, assignment_id: Optional[int] = None) -> List[Submission]:
        return self._read(
            lambda db: self.assignments.ungraded_submissions(db, assignment_id)
        )

    def student_assignment_average(self, student_id: int) -> Optional[float]:
        return self._read(
            lambda db: self.assignments.student_average_score(db, student_id)
        )

    def assignment_submissions_by_student(self, student_id: int) -> List[Submission]:
        return self._read(
            lambda db: self.assignments.submissions_by_student(db, student_id)
        )

    # === 评价 ===

    def create_review(
        self,
        course_id: int,
        student_id: int,
        rating: int,
        comment: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CourseReview:
        return self._write(
            lambda db: self.reviews.create_review(db, course_id, student_id, rating, comment),
            cancel,
        )

    def average_rating(self, course_id: int) -> Optional[float]:
        return self._read(lambda db: self.reviews.average_rating(db, course_id))

    def reviews_for_course(self, course_id: int) -> List[CourseReview]:
        return self._read(lambda db: self.reviews.reviews_for_course(db, course_id))
