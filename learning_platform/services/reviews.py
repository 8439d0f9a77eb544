"""课程评价服务。"""

from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from learning_platform.db import flush_unique
from learning_platform.errors import DuplicateError, InvalidRangeError, NotFoundError
from learning_platform.models import Course, CourseReview, User

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class ReviewService:
    def create_review(
        self,
        db: Session,
        course_id: int,
        student_id: int,
        rating: int,
        comment: Optional[str] = None,
    ) -> CourseReview:
        logger.info("creating_review", course_id=course_id, student_id=student_id)

        if isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRangeError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}", rating=rating
            )
        if db.get(Course, course_id) is None:
            raise NotFoundError("Course", course_id)
        if db.get(User, student_id) is None:
            raise NotFoundError("User", student_id)

        message = f"Review already exists for course {course_id} by student {student_id}"
        exists = db.scalar(
            select(CourseReview.id).where(
                CourseReview.course_id == course_id,
                CourseReview.student_id == student_id,
            )
        )
        if exists is not None:
            raise DuplicateError(message, course_id=course_id, student_id=student_id)

        review = CourseReview(
            course_id=course_id, student_id=student_id, rating=rating, comment=comment
        )
        db.add(review)
        flush_unique(db, message, course_id=course_id, student_id=student_id)

        logger.info("review_created", review_id=review.id, rating=rating)
        return review

    def reviews_for_course(self, db: Session, course_id: int) -> List[CourseReview]:
        stmt = select(CourseReview).where(CourseReview.course_id == course_id)
        return list(db.scalars(stmt.order_by(CourseReview.created_at.desc(), CourseReview.id)))

    def average_rating(self, db: Session, course_id: int) -> Optional[float]:
        return db.scalar(
            select(func.avg(CourseReview.rating)).where(CourseReview.course_id == course_id)
        )
