"""作业与作业提交服务。

提交对 (assignment, student) 唯一；批改只能发生一次，``score IS NULL`` 作为
UPDATE 的前置条件，两位教师并发批改时只有一方生效。
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from learning_platform.db import flush_unique
from learning_platform.errors import (
    AlreadyCompletedError,
    DuplicateError,
    InvalidRangeError,
    NotFoundError,
)
from learning_platform.models import Assignment, Lesson, Submission, User
from learning_platform.utils.timeutils import utcnow


logger = structlog.get_logger(__name__)


class AssignmentService:
    """封装作业创建、提交与批改逻辑。"""

    def get_assignment(self, db: Session, assignment_id: int) -> Assignment:
        assignment = db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def get_submission(self, db: Session, submission_id: int) -> Submission:
        submission = db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def create_assignment(
        self,
        db: Session,
        lesson_id: int,
        title: str,
        due_date: Optional[datetime] = None,
        max_score: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Assignment:
        logger.info("creating_assignment", lesson_id=lesson_id)

        if db.get(Lesson, lesson_id) is None:
            raise NotFoundError("Lesson", lesson_id)
        if max_score is not None and max_score <= 0:
            raise InvalidRangeError("Max score must be positive", max_score=max_score)

        assignment = Assignment(
            lesson_id=lesson_id,
            title=title,
            due_date=due_date,
            max_score=max_score,
            description=description,
        )
        db.add(assignment)
        db.flush()

        logger.info("assignment_created", assignment_id=assignment.id)
        return assignment

    def submit(
        self, db: Session, assignment_id: int, student_id: int, content: Optional[str]
    ) -> Submission:
        logger.info("submitting_assignment", assignment_id=assignment_id, student_id=student_id)

        self.get_assignment(db, assignment_id)
        if db.get(User, student_id) is None:
            raise NotFoundError("User", student_id)

        message = (
            f"Submission already exists for assignment {assignment_id} by student {student_id}"
        )
        exists = db.scalar(
            select(Submission.id).where(
                Submission.assignment_id == assignment_id,
                Submission.student_id == student_id,
            )
        )
        if exists is not None:
            raise DuplicateError(message, assignment_id=assignment_id, student_id=student_id)

        submission = Submission(
            assignment_id=assignment_id, student_id=student_id, content=content
        )
        db.add(submission)
        flush_unique(db, message, assignment_id=assignment_id, student_id=student_id)

        logger.info("submission_created", submission_id=submission.id)
        return submission

    def grade(
        self, db: Session, submission_id: int, score: int, feedback: Optional[str] = None
    ) -> Submission:
        logger.info("grading_submission", submission_id=submission_id)

        submission = self.get_submission(db, submission_id)
        assignment = self.get_assignment(db, submission.assignment_id)
        upper = assignment.max_score
        if score < 0 or (upper is not None and score > upper):
            raise InvalidRangeError(
                f"Score must be between 0 and {upper if upper is not None else 'unbounded'}",
                score=score,
            )

        stmt = (
            update(Submission)
            .where(Submission.id == submission_id, Submission.score.is_(None))
            .values(score=score, feedback=feedback, graded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if not db.execute(stmt).rowcount:
            raise AlreadyCompletedError(
                "Submission is already graded", submission_id=submission_id
            )

        logger.info("submission_graded", submission_id=submission_id, score=score)
        return db.get(Submission, submission_id, populate_existing=True)

    def submissions_by_student(self, db: Session, student_id: int) -> List[Submission]:
        stmt = select(Submission).where(Submission.student_id == student_id)
        return list(db.scalars(stmt.order_by(Submission.id)))

    def ungraded_submissions(
        self, db: Session, assignment_id: Optional[int] = None
    ) -> List[Submission]:
        stmt = select(Submission).where(Submission.score.is_(None))
        if assignment_id is not None:
            stmt = stmt.where(Submission.assignment_id == assignment_id)
        return list(db.scalars(stmt.order_by(Submission.submitted_at, Submission.id)))

    def student_average_score(self, db: Session, student_id: int) -> Optional[float]:
        return db.scalar(
            select(func.avg(Submission.score)).where(
                Submission.student_id == student_id, Submission.score.is_not(None)
            )
        )
