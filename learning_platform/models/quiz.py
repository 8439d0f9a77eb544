"""测验模型 - 测验 / 题目 / 选项 / 作答记录。"""

from datetime import datetime
from typing import TYPE_CHECKING, FrozenSet, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learning_platform.db import Base
from learning_platform.models.enums import QuestionType
from learning_platform.utils.timeutils import utcnow

if TYPE_CHECKING:
    from learning_platform.models.user import User


class Quiz(Base):
    """模块测验，每个模块至多一个。"""

    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    time_limit: Mapped[Optional[int]] = mapped_column(Integer)  # 分钟
    passing_score: Mapped[Optional[int]] = mapped_column(Integer)  # 及格分（百分制）

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    questions: Mapped[List["Question"]] = relationship(
        order_by="(Question.order_index, Question.id)",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    submissions: Mapped[List["QuizSubmission"]] = relationship(
        order_by="QuizSubmission.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id}, module_id={self.module_id}, title={self.title})>"


class Question(Base):
    """测验题目。``points`` 目前不参与计分。"""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[QuestionType] = mapped_column(Enum(QuestionType), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    options: Mapped[List["AnswerOption"]] = relationship(
        order_by="(AnswerOption.order_index, AnswerOption.id)",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def correct_option_ids(self) -> FrozenSet[int]:
        return frozenset(option.id for option in self.options if option.is_correct)

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, type={self.type.value})>"


class AnswerOption(Base):
    """题目选项，只通过 ``question_id`` 指回题目。"""

    __tablename__ = "answer_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<AnswerOption(id={self.id}, question_id={self.question_id}, correct={self.is_correct})>"


class QuizSubmission(Base):
    """学生测验作答记录，(quiz_id, student_id) 唯一且只写一次。"""

    __tablename__ = "quiz_submissions"
    __table_args__ = (UniqueConstraint("quiz_id", "student_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    taken_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    student: Mapped["User"] = relationship(lazy="raise")

    def is_passed(self, passing_score: Optional[int]) -> bool:
        if passing_score is None:
            return True
        return self.score >= passing_score

    def __repr__(self) -> str:
        return (
            f"<QuizSubmission(id={self.id}, score={self.score}, "
            f"correct={self.correct_answers}/{self.total_questions})>"
        )
