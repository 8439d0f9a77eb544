"""作业与作业提交模型定义。"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learning_platform.db import Base
from learning_platform.utils.timeutils import as_utc, utcnow

if TYPE_CHECKING:
    from learning_platform.models.user import User


class Assignment(Base):
    """课时下的作业。"""

    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lesson_id: Mapped[int] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    max_score: Mapped[Optional[int]] = mapped_column(Integer)  # 满分，如 100

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    submissions: Mapped[List["Submission"]] = relationship(
        order_by="Submission.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def is_past_due(self, now: Optional[datetime] = None) -> bool:
        if self.due_date is None:
            return False
        return (now or utcnow()) > as_utc(self.due_date)

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, title={self.title})>"


class Submission(Base):
    """学生作业提交。

    (assignment_id, student_id) 唯一；``score`` 为空表示未批改，
    一旦批改即不可再修改。
    """

    __tablename__ = "submissions"
    __table_args__ = (UniqueConstraint("assignment_id", "student_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[Optional[str]] = mapped_column(Text)  # 文本内容或文件地址
    score: Mapped[Optional[int]] = mapped_column(Integer)
    feedback: Mapped[Optional[str]] = mapped_column(Text)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    student: Mapped["User"] = relationship(lazy="raise")

    @property
    def is_graded(self) -> bool:
        return self.score is not None

    def is_late(self, due_date: Optional[datetime]) -> bool:
        """相对给定截止时间是否迟交；作业只以 id 指回，截止时间由调用方传入。"""

        if due_date is None:
            return False
        return as_utc(self.submitted_at) > as_utc(due_date)

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, assignment_id={self.assignment_id}, score={self.score})>"
