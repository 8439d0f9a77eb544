"""学习进度模型 - 选课记录与课程评价。"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learning_platform.db import Base
from learning_platform.models.enums import EnrollmentStatus
from learning_platform.utils.timeutils import utcnow

if TYPE_CHECKING:
    from learning_platform.models.course import Course
    from learning_platform.models.user import User


class Enrollment(Base):
    """学生选课记录。

    (student_id, course_id) 唯一；退课只把状态改为 DROPPED，不删除记录。
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id"),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_enrollment_progress_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus), default=EnrollmentStatus.ACTIVE, nullable=False
    )
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    final_grade: Mapped[Optional[float]] = mapped_column(Float)

    # 时间戳
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    student: Mapped["User"] = relationship(lazy="raise")
    course: Mapped["Course"] = relationship(lazy="raise", overlaps="enrollments")

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id}, status={self.status.value}, "
            f"progress={self.progress_percentage})>"
        )


class CourseReview(Base):
    """课程评价，评分 1-5，(course_id, student_id) 唯一。"""

    __tablename__ = "course_reviews"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    student: Mapped["User"] = relationship(lazy="raise")

    @property
    def has_comment(self) -> bool:
        return bool(self.comment and self.comment.strip())

    def __repr__(self) -> str:
        return f"<CourseReview(id={self.id}, course_id={self.course_id}, rating={self.rating})>"
