"""选课生命周期。

状态机：ACTIVE → {COMPLETED, DROPPED, SUSPENDED}，SUSPENDED ↔ ACTIVE。
COMPLETED 为终态：不再接受进度更新，重复完成报 ``AlreadyCompletedError``。

所有状态迁移都写成带前置状态条件的单条 UPDATE，受影响行数为 0 即说明前置状态
不成立（或被并发调用抢先），据此判定失败，不存在先读后写的竞态窗口。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement

from learning_platform.db import flush_unique
from learning_platform.errors import (
    AlreadyCompletedError,
    DuplicateError,
    InvalidInputError,
    InvalidRangeError,
    NotFoundError,
    WrongRoleError,
)
from learning_platform.models import Course, Enrollment, EnrollmentStatus, User, UserRole
from learning_platform.utils.timeutils import utcnow


logger = structlog.get_logger(__name__)


class EnrollmentService:
    """封装选课、进度更新、完成与退课逻辑。"""

    def get(self, db: Session, enrollment_id: int) -> Enrollment:
        enrollment = db.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        return enrollment

    def find(self, db: Session, student_id: int, course_id: int) -> Optional[Enrollment]:
        return db.scalar(
            select(Enrollment).where(
                Enrollment.student_id == student_id, Enrollment.course_id == course_id
            )
        )

    def is_enrolled(self, db: Session, student_id: int, course_id: int) -> bool:
        return self.find(db, student_id, course_id) is not None

    def enroll(self, db: Session, student_id: int, course_id: int) -> Enrollment:
        logger.info("enrolling_student", student_id=student_id, course_id=course_id)

        student = db.get(User, student_id)
        if student is None:
            raise NotFoundError("User", student_id)
        if student.role != UserRole.STUDENT:
            raise WrongRoleError(
                "Only students can be enrolled in courses", user_id=student_id
            )
        if db.get(Course, course_id) is None:
            raise NotFoundError("Course", course_id)

        message = f"Enrollment already exists for student {student_id} and course {course_id}"
        if self.is_enrolled(db, student_id, course_id):
            raise DuplicateError(message, student_id=student_id, course_id=course_id)

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE,
            progress_percentage=0,
        )
        db.add(enrollment)
        flush_unique(db, message, student_id=student_id, course_id=course_id)

        logger.info(
            "student_enrolled",
            student_id=student_id,
            course_id=course_id,
            enrollment_id=enrollment.id,
        )
        return enrollment

    def update_progress(self, db: Session, enrollment_id: int, percentage: int) -> Enrollment:
        logger.info("updating_progress", enrollment_id=enrollment_id, percentage=percentage)

        if isinstance(percentage, bool) or not isinstance(percentage, int) or not 0 <= percentage <= 100:
            raise InvalidRangeError(
                "Progress percentage must be between 0 and 100", percentage=percentage
            )
        self.get(db, enrollment_id)

        changed = self._transition(
            db,
            enrollment_id,
            [Enrollment.status != EnrollmentStatus.COMPLETED],
            {"progress_percentage": percentage},
        )
        if not changed:
            raise AlreadyCompletedError(
                "Enrollment is already completed", enrollment_id=enrollment_id
            )

        # 仅 ACTIVE 自动完成；DROPPED / SUSPENDED 只改数字，不恢复状态
        if percentage == 100:
            completed = self._transition(
                db,
                enrollment_id,
                [Enrollment.status == EnrollmentStatus.ACTIVE],
                {"status": EnrollmentStatus.COMPLETED, "completed_at": utcnow()},
            )
            if completed:
                logger.info("enrollment_auto_completed", enrollment_id=enrollment_id)

        return self._reload(db, enrollment_id)

    def complete(
        self, db: Session, enrollment_id: int, final_grade: Optional[float] = None
    ) -> Enrollment:
        logger.info("completing_enrollment", enrollment_id=enrollment_id)

        self.get(db, enrollment_id)
        values: Dict[str, Any] = {
            "status": EnrollmentStatus.COMPLETED,
            "progress_percentage": 100,
            "completed_at": utcnow(),
        }
        if final_grade is not None:
            values["final_grade"] = final_grade

        changed = self._transition(
            db, enrollment_id, [Enrollment.status != EnrollmentStatus.COMPLETED], values
        )
        if not changed:
            raise AlreadyCompletedError(
                "Enrollment is already completed", enrollment_id=enrollment_id
            )

        logger.info(
            "enrollment_completed", enrollment_id=enrollment_id, final_grade=final_grade
        )
        return self._reload(db, enrollment_id)

    def unenroll(self, db: Session, enrollment_id: int) -> Enrollment:
        """退课：状态改为 DROPPED，保留记录。已退课再次调用不报错。"""

        logger.info("unenrolling", enrollment_id=enrollment_id)

        self.get(db, enrollment_id)
        changed = self._transition(
            db,
            enrollment_id,
            [Enrollment.status != EnrollmentStatus.COMPLETED],
            {"status": EnrollmentStatus.DROPPED},
        )
        if not changed:
            raise AlreadyCompletedError(
                "Completed enrollment cannot be dropped", enrollment_id=enrollment_id
            )

        logger.info("unenrolled", enrollment_id=enrollment_id)
        return self._reload(db, enrollment_id)

    def suspend(self, db: Session, enrollment_id: int) -> Enrollment:
        return self._move(
            db, enrollment_id, EnrollmentStatus.ACTIVE, EnrollmentStatus.SUSPENDED
        )

    def resume(self, db: Session, enrollment_id: int) -> Enrollment:
        return self._move(
            db, enrollment_id, EnrollmentStatus.SUSPENDED, EnrollmentStatus.ACTIVE
        )

    def list_enrollments(
        self,
        db: Session,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        status: Optional[EnrollmentStatus] = None,
    ) -> List[Enrollment]:
        stmt = select(Enrollment).where(*self._filters(student_id, course_id, status))
        return list(db.scalars(stmt.order_by(Enrollment.id)))

    def count(
        self,
        db: Session,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        status: Optional[EnrollmentStatus] = None,
    ) -> int:
        stmt = select(func.count(Enrollment.id)).where(
            *self._filters(student_id, course_id, status)
        )
        return db.scalar(stmt) or 0

    # === Helpers ===

    def _filters(
        self,
        student_id: Optional[int],
        course_id: Optional[int],
        status: Optional[EnrollmentStatus],
    ) -> List[ColumnElement[bool]]:
        filters: List[ColumnElement[bool]] = []
        if student_id is not None:
            filters.append(Enrollment.student_id == student_id)
        if course_id is not None:
            filters.append(Enrollment.course_id == course_id)
        if status is not None:
            filters.append(Enrollment.status == status)
        return filters

    def _move(
        self,
        db: Session,
        enrollment_id: int,
        source: EnrollmentStatus,
        target: EnrollmentStatus,
    ) -> Enrollment:
        self.get(db, enrollment_id)
        changed = self._transition(
            db, enrollment_id, [Enrollment.status == source], {"status": target}
        )
        if not changed:
            current = self._reload(db, enrollment_id)
            if current.status == EnrollmentStatus.COMPLETED:
                raise AlreadyCompletedError(
                    "Enrollment is already completed", enrollment_id=enrollment_id
                )
            raise InvalidInputError(
                f"Cannot move enrollment from {current.status.value} to {target.value}",
                enrollment_id=enrollment_id,
            )
        logger.info(
            "enrollment_status_changed",
            enrollment_id=enrollment_id,
            source=source.value,
            target=target.value,
        )
        return self._reload(db, enrollment_id)

    def _transition(
        self,
        db: Session,
        enrollment_id: int,
        conditions: Sequence[ColumnElement[bool]],
        values: Dict[str, Any],
    ) -> int:
        stmt = (
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    def _reload(self, db: Session, enrollment_id: int) -> Enrollment:
        return db.get(Enrollment, enrollment_id, populate_existing=True)
